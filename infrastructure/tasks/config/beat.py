"""Celery beat schedule configuration.

The expiry sweep is scheduled here only when it is configured to run out of
process (``CHECKOUT__REAPER_BACKEND=celery``); otherwise the API lifespan
owns it.
"""
from __future__ import annotations

from core.config import settings


def build_beat_schedule() -> dict:
    schedule: dict = {}
    if settings.checkout.reaper_backend == "celery":
        schedule["checkout-reap-expired-sessions"] = {
            "task": "checkout.reap_expired_sessions",
            "schedule": float(settings.checkout.reaper_interval_seconds),
            "options": {"queue": "low", "expires": float(settings.checkout.reaper_interval_seconds)},
        }
    return schedule


CELERY_BEAT_SCHEDULE = build_beat_schedule()
