"""
Catalog repository interfaces (products and cart lines).
"""
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from .entity import CartItem, Product


class ProductRepository(ABC):

    @abstractmethod
    async def get_by_id(self, product_id: str) -> Optional[Product]:
        pass

    @abstractmethod
    async def decrement_stock(self, product_id: str, quantity: int) -> bool:
        """Guarded decrement: only applies when stock >= quantity.

        Returns False when the guard rejected the update.
        """
        pass


class CartRepository(ABC):

    @abstractmethod
    async def list_for_user(self, user_id: str, item_ids: Iterable[str]) -> List[CartItem]:
        """Cart lines of `user_id` among `item_ids`, each with its product loaded"""
        pass

    @abstractmethod
    async def delete_items(self, user_id: str, item_ids: Iterable[str]) -> int:
        """Remove exactly these lines of the user's cart, returns rows removed"""
        pass
