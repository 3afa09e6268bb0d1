"""Small dispatching helpers to decouple Celery from callers."""
from __future__ import annotations

from typing import Any, Dict

from ..config.celery import celery_app


class TaskDispatcher:
    """Internal facade used by the application layer to schedule tasks."""

    def send_order_confirmation(self, order_id: str, user_id: str, total_amount: str, payment_method: str) -> None:
        self.enqueue(
            "notifications.send_order_confirmation",
            kwargs={
                "order_id": order_id,
                "user_id": user_id,
                "total_amount": total_amount,
                "payment_method": payment_method,
            },
        )

    def enqueue(self, task_name: str, *, args: tuple | None = None, kwargs: Dict[str, Any] | None = None) -> None:
        """Schedule a registered task by name (runs inline when the app is eager)."""
        if celery_app.conf.task_always_eager and task_name in celery_app.tasks:
            # send_task bypasses eager mode
            celery_app.tasks[task_name].apply(args=args or (), kwargs=kwargs or {})
            return
        celery_app.send_task(task_name, args=args or (), kwargs=kwargs or {})
