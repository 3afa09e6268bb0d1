import re
from decimal import Decimal

import pytest

from application.dtos.payments import InitiateResult
from domain.checkout.entity import SessionStatus
from domain.common.exceptions import (
    CartItemsNotFoundException,
    DomainValidationException,
    GatewayTransportError,
    InsufficientStockException,
    PaymentInitiationError,
    ProductUnavailableException,
)
from infrastructure.external.payments.base import TransactionIdGenerator
from tests.fakes import ADDRESS, seed_cart


@pytest.mark.asyncio
async def test_create_session_freezes_amount_and_attaches_redirect(store, gateway, services):
    ids = seed_cart(store)

    summary = await services.sessions.create_session("u1", ADDRESS, ids)

    assert summary.amount == Decimal("499.00")
    assert summary.payment_url == "https://pay.example/checkout"
    assert gateway.initiated == [(summary.transaction_id, Decimal("499.00"))]

    session = store.sessions[summary.transaction_id]
    assert session.status == SessionStatus.PENDING
    assert session.cart_item_ids == ids
    assert [i.unit_price for i in session.items] == [Decimal("199.00"), Decimal("150.00")]
    assert session.payment_url == "https://pay.example/checkout"
    assert session.gateway_transaction_id == "PG123"
    assert session.expires_at > session.created_at
    # nothing is reserved or removed before payment
    assert store.products["P1"].stock == 5
    assert set(store.cart_items) == set(ids)


@pytest.mark.asyncio
async def test_create_session_dedupes_selected_ids(store, services):
    ids = seed_cart(store)
    summary = await services.sessions.create_session("u1", ADDRESS, ids + [ids[0]])
    assert store.sessions[summary.transaction_id].cart_item_ids == ids


@pytest.mark.asyncio
@pytest.mark.parametrize("missing", ["name", "phone", "address", "city", "state", "pincode"])
async def test_incomplete_address_is_rejected(store, services, missing):
    ids = seed_cart(store)
    address = {**ADDRESS, missing: "  "}
    with pytest.raises(DomainValidationException):
        await services.sessions.create_session("u1", address, ids)
    assert store.sessions == {}


@pytest.mark.asyncio
async def test_empty_selection_is_rejected(store, services):
    seed_cart(store)
    with pytest.raises(DomainValidationException):
        await services.sessions.create_session("u1", ADDRESS, [])


@pytest.mark.asyncio
async def test_foreign_cart_item_is_not_found(store, services):
    seed_cart(store, "u1")
    other_ids = seed_cart(store, "u2")
    with pytest.raises(CartItemsNotFoundException):
        await services.sessions.create_session("u1", ADDRESS, other_ids)
    assert store.sessions == {}


@pytest.mark.asyncio
async def test_inactive_product_is_unavailable(store, services):
    ids = seed_cart(store)
    store.products["P2"].is_active = False
    with pytest.raises(ProductUnavailableException):
        await services.sessions.create_session("u1", ADDRESS, ids)


@pytest.mark.asyncio
async def test_insufficient_stock_is_rejected(store, services):
    ids = seed_cart(store)
    store.products["P2"].stock = 1
    with pytest.raises(InsufficientStockException):
        await services.sessions.create_session("u1", ADDRESS, ids)
    assert store.sessions == {}


@pytest.mark.asyncio
async def test_gateway_refusal_fails_the_session(store, gateway, services):
    ids = seed_cart(store)
    gateway.initiate_result = InitiateResult(success=False, error="[BAD_REQUEST] invalid amount")

    with pytest.raises(PaymentInitiationError):
        await services.sessions.create_session("u1", ADDRESS, ids)

    (session,) = store.sessions.values()
    assert session.status == SessionStatus.FAILED
    assert session.failure_reason == "[BAD_REQUEST] invalid amount"
    assert set(store.cart_items) == set(ids)


@pytest.mark.asyncio
async def test_gateway_transport_error_fails_the_session(store, gateway, services):
    ids = seed_cart(store)
    gateway.initiate_error = GatewayTransportError("unreachable", provider="phonepe", operation="initiate")

    with pytest.raises(GatewayTransportError):
        await services.sessions.create_session("u1", ADDRESS, ids)

    (session,) = store.sessions.values()
    assert session.status == SessionStatus.FAILED


def test_transaction_ids_are_unique_and_increasing():
    generate = TransactionIdGenerator(clock=lambda: 1_700_000_000.0)
    ids = [generate("user-42") for _ in range(50)]

    assert len(set(ids)) == 50
    for txn in ids:
        assert re.fullmatch(r"TXN_USER42_\d{13}_[A-Z0-9]{8}", txn)
    millis = [int(txn.split("_")[2]) for txn in ids]
    assert millis == sorted(millis) and len(set(millis)) == 50
