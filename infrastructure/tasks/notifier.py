"""OrderNotifier backed by the Celery task dispatcher."""
from __future__ import annotations

from typing import Optional

from domain.order.entity import Order
from .utils.dispatcher import TaskDispatcher


class CeleryOrderNotifier:
    def __init__(self, dispatcher: Optional[TaskDispatcher] = None) -> None:
        self._dispatcher = dispatcher or TaskDispatcher()

    async def order_confirmed(self, order: Order) -> None:
        self._dispatcher.send_order_confirmation(
            order_id=order.id,
            user_id=str(order.user_id),
            total_amount=str(order.total_amount),
            payment_method=order.payment_method.value,
        )
