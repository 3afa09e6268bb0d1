"""
Guarded PENDING -> terminal transition shared by the callback handler and
the status poller.

Only the caller whose compare-and-set update takes effect runs the order
materialization; every other delivery of the same outcome is a no-op.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from application.services.order_materializer import OrderMaterializer
from core.logging_config import get_logger
from domain.checkout.entity import PaymentSession, SessionStatus
from domain.common.exceptions import PaymentSessionNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order
from shared.codes.payment_codes import (
    GATEWAY_STATE_COMPLETED,
    GATEWAY_STATE_FAILED,
)


logger = get_logger(__name__)

_TARGET_STATUS = {
    GATEWAY_STATE_COMPLETED: SessionStatus.SUCCESS,
    GATEWAY_STATE_FAILED: SessionStatus.FAILED,
}


@dataclass
class SettlementOutcome:
    session: PaymentSession
    applied: bool
    order: Optional[Order] = None


class SessionSettlement:
    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork], materializer: OrderMaterializer) -> None:
        self._uow_factory = uow_factory
        self._materializer = materializer

    async def apply(
        self,
        transaction_id: str,
        gateway_state: str,
        *,
        gateway_transaction_id: Optional[str] = None,
        payment_method: Optional[str] = None,
        source: str = "callback",
        now: Optional[datetime] = None,
    ) -> SettlementOutcome:
        """Record a gateway outcome for the session.

        COMPLETED moves PENDING to SUCCESS and materializes the order, FAILED
        moves PENDING to FAILED, anything else (gateway still processing)
        leaves the session as is.
        """
        now = now or datetime.now(timezone.utc)

        async with self._uow_factory(readonly=True) as uow:
            session = await uow.payment_session_repository.get_by_transaction_id(transaction_id)
        if session is None:
            raise PaymentSessionNotFoundException(transaction_id)

        target = _TARGET_STATUS.get((gateway_state or "").upper())
        if target is None:
            logger.info(
                "payment_still_processing",
                transaction_id=transaction_id,
                gateway_state=gateway_state,
                source=source,
            )
            return SettlementOutcome(session=session, applied=False)

        if session.status != SessionStatus.PENDING:
            self._log_ignored(session, target, source)
            return SettlementOutcome(session=session, applied=False)

        async with self._uow_factory() as uow:
            applied = await uow.payment_session_repository.transition_status(
                transaction_id,
                expected=SessionStatus.PENDING,
                new=target,
                now=now,
                gateway_transaction_id=gateway_transaction_id,
                payment_method=payment_method,
            )

        async with self._uow_factory(readonly=True) as uow:
            session = await uow.payment_session_repository.get_by_transaction_id(transaction_id)

        if not applied:
            self._log_ignored(session, target, source)
            return SettlementOutcome(session=session, applied=False)

        logger.info(
            "payment_session_transitioned",
            transaction_id=transaction_id,
            from_status=SessionStatus.PENDING.value,
            to_status=target.value,
            gateway_transaction_id=gateway_transaction_id,
            source=source,
        )

        order = None
        if target == SessionStatus.SUCCESS:
            order = await self._materializer.try_materialize(transaction_id, now=now)
            async with self._uow_factory(readonly=True) as uow:
                session = await uow.payment_session_repository.get_by_transaction_id(transaction_id)
        return SettlementOutcome(session=session, applied=True, order=order)

    @staticmethod
    def _log_ignored(session: PaymentSession, target: SessionStatus, source: str) -> None:
        if target == SessionStatus.SUCCESS and session.status in (SessionStatus.EXPIRED, SessionStatus.FAILED):
            # money may have been captured for a session that no longer accepts it
            logger.warning(
                "late_payment_on_closed_session",
                transaction_id=session.transaction_id,
                status=session.status.value,
                source=source,
            )
            return
        logger.info(
            "callback_duplicate_ignored",
            transaction_id=session.transaction_id,
            status=session.status.value,
            requested=target.value,
            source=source,
        )
