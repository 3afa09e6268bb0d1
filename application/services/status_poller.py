"""
Client-driven status polling, the synchronous fallback when a callback is
late or lost.
"""
from __future__ import annotations

from typing import Callable, Optional

from application.dtos.payments import SessionView
from application.ports.payment_gateway import PaymentGateway
from application.services.settlement import SessionSettlement
from core.logging_config import get_logger
from domain.checkout.entity import PaymentSession, SessionStatus
from domain.common.exceptions import PaymentSessionNotFoundException, SessionAccessDeniedException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order


logger = get_logger(__name__)


class StatusPoller:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        gateway: PaymentGateway,
        settlement: SessionSettlement,
    ) -> None:
        self._uow_factory = uow_factory
        self._gateway = gateway
        self._settlement = settlement

    async def poll(self, transaction_id: str, user_id: str) -> SessionView:
        """Current view of the caller's session.

        A PENDING session is checked with the gateway first; terminal sessions
        are answered from the store. Transport errors propagate untouched.
        """
        session = await self._load_owned(transaction_id, user_id)
        order: Optional[Order] = None

        if session.status == SessionStatus.PENDING:
            status = await self._gateway.check_status(transaction_id)
            if status.success and status.state:
                outcome = await self._settlement.apply(
                    transaction_id,
                    status.state,
                    gateway_transaction_id=status.gateway_transaction_id,
                    payment_method=status.payment_method,
                    source="poll",
                )
                session, order = outcome.session, outcome.order
            else:
                logger.info(
                    "payment_status_unresolved",
                    transaction_id=transaction_id,
                    gateway_code=status.code,
                    gateway_message=status.message,
                )

        if order is None and session.order_id:
            async with self._uow_factory(readonly=True) as uow:
                order = await uow.order_repository.get_by_id(session.order_id)
        return SessionView.from_entities(session, order)

    async def _load_owned(self, transaction_id: str, user_id: str) -> PaymentSession:
        async with self._uow_factory(readonly=True) as uow:
            session = await uow.payment_session_repository.get_by_transaction_id(transaction_id)
        if session is None:
            raise PaymentSessionNotFoundException(transaction_id)
        if not session.is_owned_by(user_id):
            logger.warning("session_access_denied", transaction_id=transaction_id, user_id=user_id)
            raise SessionAccessDeniedException(transaction_id)
        return session
