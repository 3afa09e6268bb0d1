"""
Cash-on-delivery checkout: no payment session, the order is materialized
immediately with payment_status=PENDING.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from application.dtos.payments import OrderView
from application.ports.notifier import NullOrderNotifier, OrderNotifier
from application.services.cart_snapshot import normalize_cart_item_ids, snapshot_cart_lines
from core.logging_config import get_logger
from domain.checkout.entity import ShippingAddress
from domain.common.exceptions import InsufficientStockException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order


logger = get_logger(__name__)


class CodCheckoutService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        notifier: Optional[OrderNotifier] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._notifier = notifier or NullOrderNotifier()

    async def place_order(
        self,
        user_id: str,
        shipping_address: Optional[Mapping[str, Any]],
        cart_item_ids: list[str],
        *,
        now: Optional[datetime] = None,
    ) -> OrderView:
        address = ShippingAddress.from_mapping(shipping_address)
        ids = normalize_cart_item_ids(cart_item_ids)
        now = now or datetime.now(timezone.utc)

        async with self._uow_factory() as uow:
            lines = await snapshot_cart_lines(uow, str(user_id), ids)
            order = Order.cash_on_delivery(user_id=str(user_id), items=lines, shipping_address=address, now=now)
            await uow.order_repository.create(order)
            for line in lines:
                if not await uow.product_repository.decrement_stock(line.product_id, line.quantity):
                    # lost a race with another checkout since the snapshot
                    product = await uow.product_repository.get_by_id(line.product_id)
                    raise InsufficientStockException(
                        line.product_id,
                        requested=line.quantity,
                        available=product.stock if product else 0,
                        name=product.name if product else None,
                    )
            await uow.cart_repository.delete_items(str(user_id), ids)

        logger.info(
            "cod_order_placed",
            order_id=order.id,
            user_id=str(user_id),
            items=len(order.items),
            total_amount=str(order.total_amount),
        )
        try:
            await self._notifier.order_confirmed(order)
        except Exception as exc:
            logger.warning("order_notification_failed", order_id=order.id, error=str(exc))
        return OrderView.from_entity(order)
