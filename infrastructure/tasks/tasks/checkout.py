"""Checkout maintenance tasks"""
from __future__ import annotations

import asyncio

from celery import shared_task

from ..utils.base_task import BaseTask
from application.services.expiry_reaper import SessionExpiryReaper
from core.config import settings


async def _reap_once() -> int:
    # 每次运行独立的事件循环，连接池不能跨循环复用
    from infrastructure.database import build_engine, build_session_factory
    from infrastructure.unit_of_work import sqlalchemy_uow_factory

    engine = build_engine(settings.database.url)
    try:
        reaper = SessionExpiryReaper(
            sqlalchemy_uow_factory(build_session_factory(engine)),
            batch_size=settings.checkout.reaper_batch_size,
        )
        return await reaper.run_once()
    finally:
        await engine.dispose()


@shared_task(name="checkout.reap_expired_sessions", bind=True, base=BaseTask, ignore_result=False)
def reap_expired_sessions(self) -> dict:
    """Expire abandoned PENDING payment sessions (beat-scheduled)."""
    expired = asyncio.run(_reap_once())
    return {"expired": expired}
