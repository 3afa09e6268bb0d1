"""
Background expiry of abandoned PENDING sessions.

``run_once`` is the whole sweep and is what tests and the Celery task call;
``start``/``stop`` wrap it in a cancellable asyncio loop owned by the API
process lifespan.
"""
from __future__ import annotations

import asyncio
import contextlib
from datetime import datetime, timezone
from typing import Callable, Optional

from core.logging_config import get_logger
from domain.checkout.entity import SessionStatus
from domain.common.unit_of_work import AbstractUnitOfWork


logger = get_logger(__name__)


class SessionExpiryReaper:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        *,
        interval_seconds: float = 300,
        batch_size: int = 200,
    ) -> None:
        self._uow_factory = uow_factory
        self._interval = interval_seconds
        self._batch_size = batch_size
        self._task: Optional[asyncio.Task] = None

    async def run_once(self, now: Optional[datetime] = None) -> int:
        """Expire every PENDING session past its deadline; returns how many this call expired."""
        now = now or datetime.now(timezone.utc)
        async with self._uow_factory(readonly=True) as uow:
            candidates = await uow.payment_session_repository.list_expired_pending(now, limit=self._batch_size)

        expired = 0
        for session in candidates:
            async with self._uow_factory() as uow:
                won = await uow.payment_session_repository.transition_status(
                    session.transaction_id,
                    expected=SessionStatus.PENDING,
                    new=SessionStatus.EXPIRED,
                    now=now,
                    expires_before=now,
                )
            if won:
                expired += 1
                logger.info(
                    "payment_session_transitioned",
                    transaction_id=session.transaction_id,
                    from_status=SessionStatus.PENDING.value,
                    to_status=SessionStatus.EXPIRED.value,
                    source="reaper",
                )

        if candidates:
            logger.info("expired_sessions_reaped", candidates=len(candidates), expired=expired)
        return expired

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="session-expiry-reaper")
        logger.info("expiry_reaper_started", interval_seconds=self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("expiry_reaper_stopped")

    async def _loop(self) -> None:
        while True:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error("expiry_reaper_failed", error=str(exc), exc_info=True)
            await asyncio.sleep(self._interval)
