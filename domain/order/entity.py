"""
Order domain entities - durable record of a fulfilled purchase.

An Order is created once (by the materializer or the COD checkout) and from
then on only payment_status / delivery_status change.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.checkout.entity import PaymentSession, SessionItem, ShippingAddress
from domain.common.exceptions import DomainValidationException


class PaymentMethod(str, Enum):
    ONLINE = "ONLINE"
    COD = "COD"


class OrderPaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class DeliveryStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"


@dataclass(frozen=True)
class OrderItem:
    product_id: str
    quantity: int
    price: Decimal  # frozen unit price

    def __post_init__(self):
        if self.quantity <= 0:
            raise DomainValidationException(f"Quantity must be positive: {self.quantity}", field="quantity")


@dataclass
class Order:
    """Order aggregate"""

    id: str
    user_id: str
    total_amount: Decimal
    payment_method: PaymentMethod
    payment_status: OrderPaymentStatus
    shipping_address: ShippingAddress
    items: list[OrderItem]
    delivery_status: DeliveryStatus = DeliveryStatus.PENDING
    transaction_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        if not self.items:
            raise DomainValidationException("Order must contain at least one item", field="items")
        if self.total_amount <= 0:
            raise DomainValidationException(f"Order total must be positive: {self.total_amount}", field="total_amount")

    @staticmethod
    def new_id() -> str:
        return uuid.uuid4().hex

    @classmethod
    def from_paid_session(cls, session: PaymentSession, *, now: Optional[datetime] = None) -> "Order":
        """Build the order for a successfully paid session using its price snapshot."""
        now = now or datetime.now(timezone.utc)
        return cls(
            id=cls.new_id(),
            user_id=session.user_id,
            total_amount=session.amount,
            payment_method=PaymentMethod.ONLINE,
            payment_status=OrderPaymentStatus.PAID,
            shipping_address=session.shipping_address,
            items=[OrderItem(product_id=i.product_id, quantity=i.quantity, price=i.unit_price) for i in session.items],
            delivery_status=DeliveryStatus.PENDING,
            transaction_id=session.transaction_id,
            created_at=now,
            updated_at=now,
            metadata={"payment_instrument": session.payment_method} if session.payment_method else {},
        )

    @classmethod
    def cash_on_delivery(
        cls,
        *,
        user_id: str,
        items: list[SessionItem],
        shipping_address: ShippingAddress,
        now: Optional[datetime] = None,
    ) -> "Order":
        now = now or datetime.now(timezone.utc)
        total = sum((i.line_total for i in items), Decimal("0"))
        return cls(
            id=cls.new_id(),
            user_id=user_id,
            total_amount=total,
            payment_method=PaymentMethod.COD,
            payment_status=OrderPaymentStatus.PENDING,
            shipping_address=shipping_address,
            items=[OrderItem(product_id=i.product_id, quantity=i.quantity, price=i.unit_price) for i in items],
            created_at=now,
            updated_at=now,
        )
