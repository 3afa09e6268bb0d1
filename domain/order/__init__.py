"""Order domain exports."""
from .entity import DeliveryStatus, Order, OrderItem, OrderPaymentStatus, PaymentMethod
from .repository import OrderRepository

__all__ = [
    "DeliveryStatus",
    "Order",
    "OrderItem",
    "OrderPaymentStatus",
    "OrderRepository",
    "PaymentMethod",
]
