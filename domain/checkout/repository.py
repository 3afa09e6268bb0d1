"""
Payment session repository interface.

Status changes are expressed as compare-and-set operations against the
store, never as read-then-write pairs: callbacks, polls and the expiry sweep
may race on the same session and only the caller that wins the conditional
update may run side effects.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from .entity import PaymentSession, SessionStatus


class PaymentSessionRepository(ABC):
    """Persistent store of payment attempts."""

    @abstractmethod
    async def create(self, session: PaymentSession) -> PaymentSession:
        """Persist a new session"""
        pass

    @abstractmethod
    async def get_by_transaction_id(self, transaction_id: str) -> Optional[PaymentSession]:
        """Load a session by its correlation key"""
        pass

    @abstractmethod
    async def attach_gateway_reference(
        self,
        transaction_id: str,
        *,
        payment_url: Optional[str],
        gateway_transaction_id: Optional[str],
    ) -> bool:
        """Store the redirect target of a PENDING session. Returns False if no longer PENDING."""
        pass

    @abstractmethod
    async def transition_status(
        self,
        transaction_id: str,
        *,
        expected: SessionStatus,
        new: SessionStatus,
        now: datetime,
        gateway_transaction_id: Optional[str] = None,
        payment_method: Optional[str] = None,
        failure_reason: Optional[str] = None,
        expires_before: Optional[datetime] = None,
    ) -> bool:
        """Atomically move the session from `expected` to `new`.

        Returns True only for the caller whose update took effect. With
        `expires_before` the update also requires `expires_at < expires_before`.
        """
        pass

    @abstractmethod
    async def set_order_id(self, transaction_id: str, order_id: str, *, now: datetime) -> bool:
        """Assign the order id if none is set yet (idempotency marker)."""
        pass

    @abstractmethod
    async def mark_materialization_failed(self, transaction_id: str, error: str, *, now: datetime) -> bool:
        """Flag a SUCCESS-without-order session for the operator queue."""
        pass

    @abstractmethod
    async def list_expired_pending(self, now: datetime, limit: int = 200) -> List[PaymentSession]:
        """PENDING sessions whose expires_at is before `now`"""
        pass

    @abstractmethod
    async def list_awaiting_materialization(self, skip: int = 0, limit: int = 100) -> List[PaymentSession]:
        """SUCCESS sessions without an order (reconciliation queue)"""
        pass

    @abstractmethod
    async def list_by_status(
        self,
        status: Optional[SessionStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[PaymentSession]:
        """Sessions filtered by status, newest first"""
        pass
