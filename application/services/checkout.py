"""
Composition of the checkout services around one gateway and one
unit-of-work factory. Built once per process (API lifespan, Celery worker).
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional

from application.ports.notifier import OrderNotifier
from application.ports.payment_gateway import PaymentGateway
from application.services.callback_handler import CallbackHandler
from application.services.cod_checkout import CodCheckoutService
from application.services.expiry_reaper import SessionExpiryReaper
from application.services.order_materializer import OrderMaterializer
from application.services.reconciliation import ReconciliationService
from application.services.session_manager import PaymentSessionManager
from application.services.settlement import SessionSettlement
from application.services.status_poller import StatusPoller
from domain.common.unit_of_work import AbstractUnitOfWork


@dataclass
class CheckoutServices:
    gateway: PaymentGateway
    sessions: PaymentSessionManager
    callbacks: CallbackHandler
    poller: StatusPoller
    materializer: OrderMaterializer
    settlement: SessionSettlement
    reaper: SessionExpiryReaper
    cod: CodCheckoutService
    reconciliation: ReconciliationService

    async def aclose(self) -> None:
        await self.reaper.stop()
        await self.gateway.aclose()


def build_checkout_services(
    uow_factory: Callable[..., AbstractUnitOfWork],
    gateway: PaymentGateway,
    *,
    notifier: Optional[OrderNotifier] = None,
    session_ttl_minutes: int = 15,
    reaper_interval_seconds: float = 300,
    reaper_batch_size: int = 200,
) -> CheckoutServices:
    materializer = OrderMaterializer(uow_factory, notifier=notifier)
    settlement = SessionSettlement(uow_factory, materializer)
    return CheckoutServices(
        gateway=gateway,
        sessions=PaymentSessionManager(uow_factory, gateway, session_ttl=timedelta(minutes=session_ttl_minutes)),
        callbacks=CallbackHandler(gateway, settlement),
        poller=StatusPoller(uow_factory, gateway, settlement),
        materializer=materializer,
        settlement=settlement,
        reaper=SessionExpiryReaper(
            uow_factory, interval_seconds=reaper_interval_seconds, batch_size=reaper_batch_size
        ),
        cod=CodCheckoutService(uow_factory, notifier=notifier),
        reconciliation=ReconciliationService(uow_factory, materializer),
    )
