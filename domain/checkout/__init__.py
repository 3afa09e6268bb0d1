"""Checkout domain exports."""
from .entity import (
    MaterializationState,
    PaymentSession,
    SessionItem,
    SessionStatus,
    ShippingAddress,
    TERMINAL_STATUSES,
)
from .repository import PaymentSessionRepository

__all__ = [
    "MaterializationState",
    "PaymentSession",
    "PaymentSessionRepository",
    "SessionItem",
    "SessionStatus",
    "ShippingAddress",
    "TERMINAL_STATUSES",
]
