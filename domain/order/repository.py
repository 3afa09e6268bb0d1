"""
Order repository interface
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import Order


class OrderRepository(ABC):

    @abstractmethod
    async def create(self, order: Order) -> Order:
        """Persist an order together with its items"""
        pass

    @abstractmethod
    async def get_by_id(self, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def get_by_transaction_id(self, transaction_id: str) -> Optional[Order]:
        """The order materialized from a payment session, if any"""
        pass
