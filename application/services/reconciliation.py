"""
Operator surface: inspect sessions and the reconciliation queue, retry a
failed materialization on explicit request.
"""
from __future__ import annotations

from typing import Callable, Optional

from application.dtos.payments import OrderView, SessionAdminView
from application.services.order_materializer import OrderMaterializer
from core.logging_config import get_logger
from domain.checkout.entity import SessionStatus
from domain.common.unit_of_work import AbstractUnitOfWork


logger = get_logger(__name__)


class ReconciliationService:
    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork], materializer: OrderMaterializer) -> None:
        self._uow_factory = uow_factory
        self._materializer = materializer

    async def list_sessions(
        self, status: Optional[SessionStatus] = None, skip: int = 0, limit: int = 100
    ) -> list[SessionAdminView]:
        async with self._uow_factory(readonly=True) as uow:
            sessions = await uow.payment_session_repository.list_by_status(status, skip=skip, limit=limit)
        return [SessionAdminView.from_entity(s) for s in sessions]

    async def list_queue(self, skip: int = 0, limit: int = 100) -> list[SessionAdminView]:
        """Paid sessions that have no order yet."""
        async with self._uow_factory(readonly=True) as uow:
            sessions = await uow.payment_session_repository.list_awaiting_materialization(skip=skip, limit=limit)
        return [SessionAdminView.from_entity(s) for s in sessions]

    async def retry(self, transaction_id: str, *, operator_id: str) -> OrderView:
        logger.info("reconciliation_retry_requested", transaction_id=transaction_id, operator_id=operator_id)
        order = await self._materializer.materialize(transaction_id)
        return OrderView.from_entity(order)
