"""
Catalog collaborators used by checkout.

Product and cart CRUD live outside this service; checkout only reads them,
decrements stock and removes consumed cart lines.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass
class Product:
    id: str
    name: str
    price: Decimal
    stock: int
    is_active: bool = True

    def has_stock_for(self, quantity: int) -> bool:
        return self.stock >= quantity


@dataclass
class CartItem:
    id: str
    user_id: str
    product_id: str
    quantity: int
    product: Optional[Product] = None
