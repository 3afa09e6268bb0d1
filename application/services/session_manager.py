"""
Payment session creation: snapshot the cart, freeze the amount, hand the
user over to the gateway.

No stock is decremented and no cart line is removed here; that only happens
once the payment is confirmed (see OrderMaterializer).
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping, Optional

from application.dtos.payments import SessionSummary
from application.ports.payment_gateway import PaymentGateway
from application.services.cart_snapshot import normalize_cart_item_ids, snapshot_cart_lines
from core.logging_config import get_logger
from domain.checkout.entity import PaymentSession, SessionStatus, ShippingAddress
from domain.common.exceptions import GatewayTransportError, PaymentInitiationError
from domain.common.unit_of_work import AbstractUnitOfWork


logger = get_logger(__name__)


class PaymentSessionManager:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        gateway: PaymentGateway,
        *,
        session_ttl: timedelta = timedelta(minutes=15),
    ) -> None:
        self._uow_factory = uow_factory
        self._gateway = gateway
        self._session_ttl = session_ttl

    async def create_session(
        self,
        user_id: str,
        shipping_address: Optional[Mapping[str, Any]],
        cart_item_ids: list[str],
        *,
        now: Optional[datetime] = None,
    ) -> SessionSummary:
        """Open a PENDING session for the selected cart items and initiate payment.

        Raises:
            DomainValidationException: incomplete address or empty selection
            CartItemsNotFoundException: stale or foreign cart item ids
            ProductUnavailableException / InsufficientStockException: catalog checks
            PaymentInitiationError: the gateway refused (session is FAILED)
            GatewayTransportError: the gateway was unreachable (session is FAILED)
        """
        address = ShippingAddress.from_mapping(shipping_address)
        ids = normalize_cart_item_ids(cart_item_ids)

        async with self._uow_factory(readonly=True) as uow:
            lines = await snapshot_cart_lines(uow, str(user_id), ids)

        transaction_id = self._gateway.generate_transaction_id(str(user_id))
        session = PaymentSession.open(
            transaction_id=transaction_id,
            user_id=str(user_id),
            items=lines,
            shipping_address=address,
            ttl=self._session_ttl,
            provider=self._gateway.provider,
            now=now,
        )
        async with self._uow_factory() as uow:
            session = await uow.payment_session_repository.create(session)

        logger.info(
            "payment_session_created",
            transaction_id=transaction_id,
            user_id=str(user_id),
            amount=str(session.amount),
            items=len(lines),
            expires_at=session.expires_at.isoformat(),
        )

        try:
            result = await self._gateway.initiate(
                transaction_id, session.amount, str(user_id), contact_number=address.phone
            )
        except GatewayTransportError as exc:
            await self._fail(transaction_id, exc.message)
            raise

        if not result.success:
            reason = result.error or "Payment initiation failed"
            await self._fail(transaction_id, reason)
            raise PaymentInitiationError(reason, provider=self._gateway.provider, transaction_id=transaction_id)

        async with self._uow_factory() as uow:
            attached = await uow.payment_session_repository.attach_gateway_reference(
                transaction_id,
                payment_url=result.payment_url,
                gateway_transaction_id=result.gateway_transaction_id,
            )
        if not attached:
            logger.warning("payment_session_closed_before_redirect", transaction_id=transaction_id)

        return SessionSummary(
            transaction_id=transaction_id,
            amount=session.amount,
            payment_url=result.payment_url,
            expires_at=session.expires_at,
        )

    async def _fail(self, transaction_id: str, reason: str) -> None:
        async with self._uow_factory() as uow:
            failed = await uow.payment_session_repository.transition_status(
                transaction_id,
                expected=SessionStatus.PENDING,
                new=SessionStatus.FAILED,
                now=datetime.now(timezone.utc),
                failure_reason=reason,
            )
        logger.warning(
            "payment_initiation_failed",
            transaction_id=transaction_id,
            provider=self._gateway.provider,
            reason=reason,
            session_failed=failed,
        )
