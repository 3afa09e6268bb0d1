"""
Order materialization for successfully paid sessions.

Everything happens in one database transaction: the order rows, the guarded
stock decrements, the cart cleanup and the session's order_id marker either
all land or none do. A failure flags the session for operator reconciliation
in a second transaction; it is never retried automatically.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

from application.ports.notifier import NullOrderNotifier, OrderNotifier
from core.logging_config import get_logger
from domain.checkout.entity import PaymentSession, SessionStatus
from domain.common.exceptions import PaymentSessionNotFoundException, ReconciliationError
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order


logger = get_logger(__name__)


class _AlreadyMaterialized(Exception):
    """Another materializer linked an order first; our transaction must roll back."""


class OrderMaterializer:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        notifier: Optional[OrderNotifier] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._notifier = notifier or NullOrderNotifier()

    async def materialize(self, transaction_id: str, *, now: Optional[datetime] = None) -> Order:
        """Create the order for a SUCCESS session, at most once.

        Returns the existing order when the session is already linked.

        Raises:
            PaymentSessionNotFoundException: unknown transaction id
            ReconciliationError: the session is not paid, or the order could not be built
        """
        now = now or datetime.now(timezone.utc)
        try:
            order, created = await self._materialize_once(transaction_id, now)
        except _AlreadyMaterialized:
            logger.info("order_materialization_lost_race", transaction_id=transaction_id)
            return await self._existing_order(transaction_id)
        except (ReconciliationError, PaymentSessionNotFoundException) as exc:
            if isinstance(exc, ReconciliationError) and exc.reason != "session_not_successful":
                await self._flag_failed(transaction_id, exc.reason, now)
            raise
        except Exception as exc:
            reason = f"unexpected_error: {exc}"
            await self._flag_failed(transaction_id, reason, now)
            raise ReconciliationError(transaction_id, reason) from exc

        if created:
            logger.info(
                "order_materialized",
                transaction_id=transaction_id,
                order_id=order.id,
                items=len(order.items),
                total_amount=str(order.total_amount),
            )
            await self._notify(order)
        return order

    async def try_materialize(self, transaction_id: str, *, now: Optional[datetime] = None) -> Optional[Order]:
        """Like materialize, but a reconciliation outcome yields None.

        Used right after a payment is confirmed: the payment itself stays
        recorded and the session shows up in the reconciliation queue.
        """
        try:
            return await self.materialize(transaction_id, now=now)
        except ReconciliationError:
            return None

    async def _materialize_once(self, transaction_id: str, now: datetime) -> tuple[Order, bool]:
        async with self._uow_factory() as uow:
            session = await uow.payment_session_repository.get_by_transaction_id(transaction_id)
            if session is None:
                raise PaymentSessionNotFoundException(transaction_id)
            if session.status != SessionStatus.SUCCESS:
                raise ReconciliationError(
                    transaction_id, "session_not_successful", details={"status": session.status.value}
                )
            if session.order_id is not None:
                existing = await uow.order_repository.get_by_id(session.order_id)
                if existing is not None:
                    return existing, False
                raise ReconciliationError(transaction_id, "linked_order_missing", details={"order_id": session.order_id})

            await self._check_cart_and_stock(uow, session)

            order = Order.from_paid_session(session, now=now)
            await uow.order_repository.create(order)

            for item in session.items:
                if not await uow.product_repository.decrement_stock(item.product_id, item.quantity):
                    raise ReconciliationError(
                        transaction_id,
                        "stock_decrement_rejected",
                        details={"product_id": item.product_id, "quantity": item.quantity},
                    )

            await uow.cart_repository.delete_items(session.user_id, session.cart_item_ids)

            if not await uow.payment_session_repository.set_order_id(transaction_id, order.id, now=now):
                raise _AlreadyMaterialized(transaction_id)
            return order, True

    async def _check_cart_and_stock(self, uow: AbstractUnitOfWork, session: PaymentSession) -> None:
        cart_items = await uow.cart_repository.list_for_user(session.user_id, session.cart_item_ids)
        if len(cart_items) != len(session.cart_item_ids):
            raise ReconciliationError(
                session.transaction_id,
                "cart_items_missing",
                details={"expected": len(session.cart_item_ids), "found": len(cart_items)},
            )
        for item in session.items:
            product = await uow.product_repository.get_by_id(item.product_id)
            if product is None or not product.has_stock_for(item.quantity):
                raise ReconciliationError(
                    session.transaction_id,
                    "insufficient_stock",
                    details={
                        "product_id": item.product_id,
                        "requested": item.quantity,
                        "available": product.stock if product else 0,
                    },
                )

    async def _existing_order(self, transaction_id: str) -> Order:
        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get_by_transaction_id(transaction_id)
        if order is None:
            raise ReconciliationError(transaction_id, "linked_order_missing")
        return order

    async def _flag_failed(self, transaction_id: str, reason: str, now: datetime) -> None:
        async with self._uow_factory() as uow:
            flagged = await uow.payment_session_repository.mark_materialization_failed(transaction_id, reason, now=now)
        logger.error(
            "reconciliation_required",
            transaction_id=transaction_id,
            reason=reason,
            flagged=flagged,
        )

    async def _notify(self, order: Order) -> None:
        try:
            await self._notifier.order_confirmed(order)
        except Exception as exc:
            # the order is already committed
            logger.warning("order_notification_failed", order_id=order.id, error=str(exc))
