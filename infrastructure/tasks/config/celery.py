"""Celery application for checkout background work.

Two workloads: order notifications and the expired-session sweep. Both use
the Redis instance from ``REDIS__URL`` as broker and result backend; in
development and test environments tasks run eagerly in-process.
"""
from __future__ import annotations

import os

from celery import Celery
from kombu import Queue

from core.config import settings
from core.logging_config import get_logger
from .beat import CELERY_BEAT_SCHEDULE

logger = get_logger(__name__)

TASK_PACKAGES = ("infrastructure.tasks.tasks",)
EAGER_ENVIRONMENTS = {"development", "dev", "test", "testing"}

celery_app = Celery("storefront_checkout")

celery_app.conf.update(
    broker_url=settings.redis.url or os.getenv("CELERY_BROKER_URL"),
    result_backend=settings.redis.url or os.getenv("CELERY_RESULT_BACKEND"),
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # Redeliver on worker loss; both task kinds are idempotent
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    result_expires=3600,
    worker_prefetch_multiplier=1,
    task_default_queue="default",
    task_default_retry_delay=5,
    task_queues=(Queue("default"), Queue("low")),
    task_routes={
        "notifications.*": {"queue": "default"},
        "checkout.*": {"queue": "low"},
    },
    beat_schedule=CELERY_BEAT_SCHEDULE,
    imports=TASK_PACKAGES,
    task_always_eager=(settings.ENVIRONMENT or "").lower() in EAGER_ENVIRONMENTS,
)


@celery_app.on_after_configure.connect
def _log_configuration(sender, **kwargs):
    logger.info(
        "celery_configured",
        broker=sender.conf.broker_url,
        eager=bool(sender.conf.task_always_eager),
        scheduled=list(sender.conf.beat_schedule or {}),
    )
