"""Infrastructure models package exports."""
from .base import Base, metadata
from .checkout import PaymentSessionModel
from .order import OrderModel, OrderItemModel
from .catalog import ProductModel, CartItemModel

__all__ = [
    "Base",
    "metadata",
    "PaymentSessionModel",
    "OrderModel",
    "OrderItemModel",
    "ProductModel",
    "CartItemModel",
]
