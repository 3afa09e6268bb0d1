"""Common base task for Celery jobs"""
from __future__ import annotations

import time

from celery import Task
from core.logging_config import get_logger

logger = get_logger(__name__)


class BaseTask(Task):
    """Unified structured logging around every task run."""

    def before_start(self, task_id, args, kwargs):  # type: ignore[override]
        self._started_at = time.monotonic()
        super().before_start(task_id, args, kwargs)

    def _elapsed_ms(self) -> float | None:
        started = getattr(self, "_started_at", None)
        return round((time.monotonic() - started) * 1000, 2) if started else None

    def on_failure(self, exc, task_id, args, kwargs, einfo):  # type: ignore[override]
        logger.error(
            "celery_task_failure",
            task_id=task_id,
            task_name=self.name,
            kwargs=kwargs,
            exc=str(exc),
            elapsed_ms=self._elapsed_ms(),
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_retry(self, exc, task_id, args, kwargs, einfo):  # type: ignore[override]
        logger.warning(
            "celery_task_retry",
            task_id=task_id,
            task_name=self.name,
            exc=str(exc),
        )
        super().on_retry(exc, task_id, args, kwargs, einfo)

    def on_success(self, retval, task_id, args, kwargs):  # type: ignore[override]
        logger.info(
            "celery_task_success",
            task_id=task_id,
            task_name=self.name,
            elapsed_ms=self._elapsed_ms(),
        )
        super().on_success(retval, task_id, args, kwargs)
