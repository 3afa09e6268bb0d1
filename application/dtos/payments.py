"""
Checkout DTOs (Pydantic v2) used at application boundaries.

Request/response models serialize with camelCase aliases, the wire
convention of the storefront clients; gateway-facing models are internal
and keep snake_case.
"""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Any, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator, model_serializer
from pydantic.alias_generators import to_camel

from domain.checkout.entity import PaymentSession
from domain.order.entity import Order

# Amounts travel as JSON numbers (rupees with paise precision)
Money = Annotated[Decimal, PlainSerializer(lambda v: float(v), return_type=float, when_used="json")]


class DTOBase(BaseModel):
    """Base DTO: camelCase aliases and UTC-Z datetimes for all subclasses."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @model_serializer(mode="wrap")
    def _serialize_model(self, handler):  # type: ignore[override]
        data = handler(self)

        def convert(value):
            if isinstance(value, datetime):
                ts = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
                s = ts.astimezone(timezone.utc).isoformat()
                return s.replace("+00:00", "Z")
            if isinstance(value, list):
                return [convert(v) for v in value]
            if isinstance(value, dict):
                return {k: convert(v) for k, v in value.items()}
            return value

        return convert(data)


# ---------------------------------------------------------------------------
# Client requests
# ---------------------------------------------------------------------------


class ShippingAddressDTO(DTOBase):
    # Completeness is checked by the domain (ShippingAddress.from_mapping)
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None

    @field_validator("phone", "pincode", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v


class CheckoutRequest(DTOBase):
    """Body of create-session and cod-order"""
    shipping_address: Optional[ShippingAddressDTO] = None
    cart_item_ids: list[str] = Field(default_factory=list)

    @field_validator("cart_item_ids", mode="before")
    @classmethod
    def _ids_as_strings(cls, v: Any) -> Any:
        if isinstance(v, list):
            return [str(i) for i in v]
        return v

    def address_mapping(self) -> Optional[dict[str, Any]]:
        return self.shipping_address.model_dump() if self.shipping_address else None


# ---------------------------------------------------------------------------
# Gateway contract values
# ---------------------------------------------------------------------------


class InitiateResult(BaseModel):
    success: bool
    payment_url: Optional[str] = None
    gateway_transaction_id: Optional[str] = None
    error: Optional[str] = None


class GatewayStatus(BaseModel):
    """Result of a status query; `state` is normalized (COMPLETED/FAILED/PENDING)."""
    success: bool
    state: Optional[str] = None
    amount: Optional[Decimal] = None
    payment_method: Optional[str] = None
    gateway_transaction_id: Optional[str] = None
    code: Optional[str] = None
    message: Optional[str] = None


class CallbackRecord(BaseModel):
    """Decoded gateway notification."""
    transaction_id: str
    state: str
    success: bool = False
    code: Optional[str] = None
    gateway_transaction_id: Optional[str] = None
    amount: Optional[Decimal] = None
    payment_method: Optional[str] = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class SessionSummary(DTOBase):
    transaction_id: str
    amount: Money
    payment_url: Optional[str] = None
    expires_at: datetime


class OrderItemView(DTOBase):
    product_id: str
    quantity: int
    price: Money


class OrderView(DTOBase):
    id: str
    total_amount: Money
    payment_method: str
    payment_status: str
    delivery_status: str
    transaction_id: Optional[str] = None
    shipping_address: dict[str, str]
    items: list[OrderItemView]
    created_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, order: Order) -> "OrderView":
        return cls(
            id=order.id,
            total_amount=order.total_amount,
            payment_method=order.payment_method.value,
            payment_status=order.payment_status.value,
            delivery_status=order.delivery_status.value,
            transaction_id=order.transaction_id,
            shipping_address=order.shipping_address.to_dict(),
            items=[OrderItemView(product_id=i.product_id, quantity=i.quantity, price=i.price) for i in order.items],
            created_at=order.created_at,
        )


class SessionView(DTOBase):
    """What the client sees when polling a session."""
    transaction_id: str
    status: str
    amount: Money
    materialization_state: str
    payment_method: Optional[str] = None
    expires_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    order: Optional[OrderView] = None

    @classmethod
    def from_entities(cls, session: PaymentSession, order: Optional[Order] = None) -> "SessionView":
        return cls(
            transaction_id=session.transaction_id,
            status=session.status.value,
            amount=session.amount,
            materialization_state=session.materialization_state.value,
            payment_method=session.payment_method,
            expires_at=session.expires_at,
            completed_at=session.completed_at,
            order=OrderView.from_entity(order) if order else None,
        )


class SessionAdminView(DTOBase):
    """Operator view including the audit fields."""
    transaction_id: str
    user_id: str
    status: str
    amount: Money
    provider: str
    gateway_transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None
    order_id: Optional[str] = None
    materialization_state: str
    materialization_error: Optional[str] = None
    cart_item_ids: list[str]
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, session: PaymentSession) -> "SessionAdminView":
        return cls(
            transaction_id=session.transaction_id,
            user_id=str(session.user_id),
            status=session.status.value,
            amount=session.amount,
            provider=session.provider,
            gateway_transaction_id=session.gateway_transaction_id,
            failure_reason=session.failure_reason,
            order_id=session.order_id,
            materialization_state=session.materialization_state.value,
            materialization_error=session.materialization_error,
            cart_item_ids=list(session.cart_item_ids),
            created_at=session.created_at,
            expires_at=session.expires_at,
            completed_at=session.completed_at,
        )


class CallbackAck(DTOBase):
    transaction_id: str
    status: str
    # False when the delivery was a duplicate or arrived after the session closed
    applied: bool
