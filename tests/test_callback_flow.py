from decimal import Decimal

import pytest

from application.services.callback_handler import extract_callback_payload
from domain.checkout.entity import MaterializationState, SessionStatus
from domain.common.exceptions import (
    CallbackAuthenticationError,
    CallbackDecodeError,
    PaymentSessionNotFoundException,
)
from domain.order.entity import OrderPaymentStatus, PaymentMethod
from infrastructure.external.payments.checksum import encode_payload
from tests.fakes import ADDRESS, RecordingNotifier, build_services, seed_cart


async def _open_session(store, services, user_id="u1"):
    ids = seed_cart(store, user_id)
    summary = await services.sessions.create_session(user_id, ADDRESS, ids)
    return summary.transaction_id, ids


@pytest.mark.asyncio
async def test_successful_payment_materializes_the_order(store, gateway, services):
    txn, ids = await _open_session(store, services)
    payload, digest = gateway.signed_callback(txn, "COMPLETED")

    ack = await services.callbacks.handle_callback(payload, digest)

    assert ack.applied is True
    assert ack.status == SessionStatus.SUCCESS.value

    session = store.sessions[txn]
    assert session.status == SessionStatus.SUCCESS
    assert session.payment_method == "UPI"
    assert session.completed_at is not None
    assert session.materialization_state == MaterializationState.COMPLETED

    order = store.orders[session.order_id]
    assert order.total_amount == Decimal("499.00")
    assert order.payment_method == PaymentMethod.ONLINE
    assert order.payment_status == OrderPaymentStatus.PAID
    assert order.transaction_id == txn
    assert len(order.items) == 2
    assert order.shipping_address.to_dict() == ADDRESS

    assert not any(i in store.cart_items for i in ids)
    assert store.products["P1"].stock == 4
    assert store.products["P2"].stock == 1


@pytest.mark.asyncio
async def test_duplicate_callback_creates_one_order(store, gateway, services):
    txn, _ = await _open_session(store, services)
    payload, digest = gateway.signed_callback(txn, "COMPLETED")

    first = await services.callbacks.handle_callback(payload, digest)
    second = await services.callbacks.handle_callback(payload, digest)

    assert first.applied is True
    assert second.applied is False
    assert second.status == SessionStatus.SUCCESS.value
    assert len(store.orders) == 1
    assert store.products["P1"].stock == 4
    assert store.products["P2"].stock == 1


@pytest.mark.asyncio
async def test_amount_is_frozen_at_session_creation(store, gateway, services):
    txn, _ = await _open_session(store, services)
    store.products["P1"].price = Decimal("999.00")
    store.products["P2"].price = Decimal("1.00")

    payload, digest = gateway.signed_callback(txn, "COMPLETED")
    await services.callbacks.handle_callback(payload, digest)

    (order,) = store.orders.values()
    assert order.total_amount == Decimal("499.00")
    assert sorted(i.price for i in order.items) == [Decimal("150.00"), Decimal("199.00")]


@pytest.mark.asyncio
async def test_failed_payment_keeps_the_cart(store, gateway, services):
    txn, ids = await _open_session(store, services)
    payload, digest = gateway.signed_callback(txn, "FAILED")

    ack = await services.callbacks.handle_callback(payload, digest)

    assert ack.applied is True
    assert store.sessions[txn].status == SessionStatus.FAILED
    assert store.orders == {}
    assert set(store.cart_items) == set(ids)

    # a late success on a failed session is acknowledged without effect
    payload, digest = gateway.signed_callback(txn, "COMPLETED")
    late = await services.callbacks.handle_callback(payload, digest)
    assert late.applied is False
    assert store.sessions[txn].status == SessionStatus.FAILED
    assert store.orders == {}


@pytest.mark.asyncio
async def test_pending_state_is_a_no_op(store, gateway, services):
    txn, _ = await _open_session(store, services)
    payload, digest = gateway.signed_callback(txn, "PENDING")

    ack = await services.callbacks.handle_callback(payload, digest)

    assert ack.applied is False
    assert store.sessions[txn].status == SessionStatus.PENDING


@pytest.mark.asyncio
async def test_tampered_callback_is_rejected_without_state_change(store, gateway, services):
    txn, _ = await _open_session(store, services)
    _, digest = gateway.signed_callback(txn, "COMPLETED")
    forged, _ = gateway.signed_callback(txn, "COMPLETED", amount_paise=100)

    with pytest.raises(CallbackAuthenticationError):
        await services.callbacks.handle_callback(forged, digest)
    with pytest.raises(CallbackAuthenticationError):
        await services.callbacks.handle_callback(forged, None)

    assert store.sessions[txn].status == SessionStatus.PENDING
    assert store.orders == {}


@pytest.mark.asyncio
async def test_verified_but_undecodable_callback(gateway, services):
    payload = encode_payload({"success": True, "data": {"state": "COMPLETED"}})
    digest = gateway._signer.sign_callback(payload)
    with pytest.raises(CallbackDecodeError):
        await services.callbacks.handle_callback(payload, digest)


@pytest.mark.asyncio
async def test_callback_for_unknown_transaction(gateway, services):
    payload, digest = gateway.signed_callback("TXN_NOPE_1_AAAAAAAA", "COMPLETED")
    with pytest.raises(PaymentSessionNotFoundException):
        await services.callbacks.handle_callback(payload, digest)


@pytest.mark.asyncio
async def test_notifier_runs_once_per_order(store, gateway):
    notifier = RecordingNotifier()
    services = build_services(store, gateway, notifier=notifier)
    txn, _ = await _open_session(store, services)
    payload, digest = gateway.signed_callback(txn, "COMPLETED")

    await services.callbacks.handle_callback(payload, digest)
    await services.callbacks.handle_callback(payload, digest)

    assert [o.transaction_id for o in notifier.orders] == [txn]


@pytest.mark.asyncio
async def test_notification_failure_does_not_undo_the_order(store, gateway):
    services = build_services(store, gateway, notifier=RecordingNotifier(fail=True))
    txn, _ = await _open_session(store, services)
    payload, digest = gateway.signed_callback(txn, "COMPLETED")

    ack = await services.callbacks.handle_callback(payload, digest)

    assert ack.applied is True
    assert len(store.orders) == 1


@pytest.mark.parametrize(
    "body, expected",
    [
        (b'{"response": "abc="}', "abc="),
        (b'{"response": 12}', ""),
        (b"[1, 2]", ""),
        (b"not json", ""),
        (b"", ""),
        (None, ""),
    ],
)
def test_extract_callback_payload(body, expected):
    assert extract_callback_payload(body) == expected
