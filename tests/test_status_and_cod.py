from decimal import Decimal

import pytest

from application.dtos.payments import GatewayStatus
from domain.checkout.entity import SessionStatus
from domain.common.exceptions import (
    GatewayTransportError,
    InsufficientStockException,
    PaymentSessionNotFoundException,
    SessionAccessDeniedException,
)
from tests.fakes import ADDRESS, seed_cart


async def _open(store, services):
    ids = seed_cart(store)
    summary = await services.sessions.create_session("u1", ADDRESS, ids)
    return summary.transaction_id


@pytest.mark.asyncio
async def test_poll_settles_a_completed_payment(store, gateway, services):
    txn = await _open(store, services)
    gateway.status = GatewayStatus(
        success=True, state="COMPLETED", amount=Decimal("499.00"), payment_method="CARD", gateway_transaction_id="PG9"
    )

    view = await services.poller.poll(txn, "u1")

    assert view.status == SessionStatus.SUCCESS.value
    assert view.order is not None
    assert view.order.total_amount == Decimal("499.00")
    assert view.materialization_state == "COMPLETED"
    assert store.sessions[txn].payment_method == "CARD"


@pytest.mark.asyncio
async def test_poll_while_gateway_is_still_processing(store, gateway, services):
    txn = await _open(store, services)

    view = await services.poller.poll(txn, "u1")

    assert view.status == SessionStatus.PENDING.value
    assert view.order is None


@pytest.mark.asyncio
async def test_poll_of_terminal_session_skips_the_gateway(store, gateway, services):
    txn = await _open(store, services)
    payload, digest = gateway.signed_callback(txn, "COMPLETED")
    await services.callbacks.handle_callback(payload, digest)

    view = await services.poller.poll(txn, "u1")

    assert gateway.status_checks == 0
    assert view.status == SessionStatus.SUCCESS.value
    assert view.order.id == store.sessions[txn].order_id


@pytest.mark.asyncio
async def test_poll_transport_error_changes_nothing(store, gateway, services):
    txn = await _open(store, services)
    gateway.status_error = GatewayTransportError("timeout", provider="phonepe", operation="check_status")

    with pytest.raises(GatewayTransportError):
        await services.poller.poll(txn, "u1")
    assert store.sessions[txn].status == SessionStatus.PENDING


@pytest.mark.asyncio
async def test_poll_checks_ownership(store, services):
    txn = await _open(store, services)

    with pytest.raises(SessionAccessDeniedException):
        await services.poller.poll(txn, "intruder")
    with pytest.raises(PaymentSessionNotFoundException):
        await services.poller.poll("TXN_UNKNOWN", "u1")


@pytest.mark.asyncio
async def test_cod_order_is_materialized_immediately(store, services):
    ids = seed_cart(store)

    order = await services.cod.place_order("u1", ADDRESS, ids)

    assert order.payment_method == "COD"
    assert order.payment_status == "PENDING"
    assert order.total_amount == Decimal("499.00")
    assert order.transaction_id is None
    assert store.sessions == {}
    assert not any(i in store.cart_items for i in ids)
    assert store.products["P1"].stock == 4
    assert store.products["P2"].stock == 1


@pytest.mark.asyncio
async def test_cod_order_rejects_short_stock(store, services):
    ids = seed_cart(store)
    store.products["P1"].stock = 0

    with pytest.raises(InsufficientStockException):
        await services.cod.place_order("u1", ADDRESS, ids)

    assert store.orders == {}
    assert set(store.cart_items) == set(ids)
