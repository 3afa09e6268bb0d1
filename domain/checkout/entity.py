"""
Checkout domain entities - the payment session aggregate.

A PaymentSession records one payment attempt. It exists independently of
whether an order is ever created and is never deleted: it is the audit trail
of the attempt.

Business rules:
1. amount is computed once at creation and never recomputed from the live cart
2. status only leaves PENDING, never returns to it
3. order_id is set at most once and only for SUCCESS sessions
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional

from domain.common.exceptions import DomainValidationException


class SessionStatus(str, Enum):
    """Payment session status"""
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"


TERMINAL_STATUSES = frozenset({SessionStatus.SUCCESS, SessionStatus.FAILED, SessionStatus.EXPIRED})


class MaterializationState(str, Enum):
    """Order materialization progress for a SUCCESS session"""
    NOT_STARTED = "NOT_STARTED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"  # operator queue; never retried automatically


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class ShippingAddress:
    """Immutable shipping address snapshot."""

    REQUIRED_FIELDS = ("name", "phone", "address", "city", "state", "pincode")

    name: str
    phone: str
    address: str
    city: str
    state: str
    pincode: str

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ShippingAddress":
        if not isinstance(data, Mapping):
            raise DomainValidationException("Shipping address is required", field="shippingAddress")
        values: dict[str, str] = {}
        for name in cls.REQUIRED_FIELDS:
            raw = data.get(name)
            value = str(raw).strip() if raw is not None else ""
            if not value:
                raise DomainValidationException(
                    f"{name} is required in shipping address",
                    field=f"shippingAddress.{name}",
                )
            values[name] = value
        return cls(**values)

    def to_dict(self) -> dict[str, str]:
        return {name: getattr(self, name) for name in self.REQUIRED_FIELDS}


@dataclass(frozen=True)
class SessionItem:
    """One cart line frozen at session creation."""

    cart_item_id: str
    product_id: str
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict[str, Any]:
        return {
            "cart_item_id": self.cart_item_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SessionItem":
        return cls(
            cart_item_id=str(data["cart_item_id"]),
            product_id=str(data["product_id"]),
            quantity=int(data["quantity"]),
            unit_price=Decimal(str(data["unit_price"])),
        )


@dataclass
class PaymentSession:
    """Payment session aggregate."""

    transaction_id: str
    user_id: str
    amount: Decimal
    cart_item_ids: list[str]
    items: list[SessionItem]
    shipping_address: ShippingAddress
    status: SessionStatus = SessionStatus.PENDING
    provider: str = "phonepe"

    gateway_transaction_id: Optional[str] = None
    payment_url: Optional[str] = None
    payment_method: Optional[str] = None
    failure_reason: Optional[str] = None

    order_id: Optional[str] = None
    materialization_state: MaterializationState = MaterializationState.NOT_STARTED
    materialization_error: Optional[str] = None

    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    id: Optional[int] = None
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        if self.amount <= 0:
            raise DomainValidationException(f"Payment amount must be positive: {self.amount}", field="amount")
        if not self.cart_item_ids:
            raise DomainValidationException("At least one cart item must be selected", field="cartItemIds")
        self.created_at = _ensure_utc(self.created_at)
        self.expires_at = _ensure_utc(self.expires_at)
        self.completed_at = _ensure_utc(self.completed_at)
        self.updated_at = _ensure_utc(self.updated_at)
        if self.metadata is None:
            self.metadata = {}

    @classmethod
    def open(
        cls,
        *,
        transaction_id: str,
        user_id: str,
        items: list[SessionItem],
        shipping_address: ShippingAddress,
        ttl: timedelta,
        provider: str,
        now: Optional[datetime] = None,
    ) -> "PaymentSession":
        """Start a PENDING session; the amount is frozen from the item snapshot."""
        now = _ensure_utc(now) or datetime.now(timezone.utc)
        amount = sum((item.line_total for item in items), Decimal("0"))
        return cls(
            transaction_id=transaction_id,
            user_id=user_id,
            amount=amount,
            cart_item_ids=[item.cart_item_id for item in items],
            items=list(items),
            shipping_address=shipping_address,
            status=SessionStatus.PENDING,
            provider=provider,
            created_at=now,
            expires_at=now + ttl,
            updated_at=now,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return self.expires_at is not None and self.expires_at < now

    def is_owned_by(self, user_id: str) -> bool:
        return str(self.user_id) == str(user_id)

    @property
    def awaits_materialization(self) -> bool:
        return self.status == SessionStatus.SUCCESS and self.order_id is None

    @property
    def needs_reconciliation(self) -> bool:
        return self.awaits_materialization and self.materialization_state == MaterializationState.FAILED
