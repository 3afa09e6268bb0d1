"""
Order notification port. Infrastructure enqueues a background task;
tests and deployments without a worker use the null notifier.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from domain.order.entity import Order


@runtime_checkable
class OrderNotifier(Protocol):
    async def order_confirmed(self, order: Order) -> None: ...


class NullOrderNotifier:
    async def order_confirmed(self, order: Order) -> None:
        return None
