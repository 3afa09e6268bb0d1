import pytest

from domain.checkout.entity import MaterializationState, SessionStatus
from domain.common.exceptions import ReconciliationError
from tests.fakes import ADDRESS


def _single_unit_catalog(store):
    store.add_product("P1", "250.00", stock=1)
    store.add_cart_item("a-C1", "alice", "P1", 1)
    store.add_cart_item("b-C1", "bob", "P1", 1)


@pytest.mark.asyncio
async def test_last_unit_paid_twice_yields_one_order_and_one_reconciliation(store, gateway, services):
    _single_unit_catalog(store)
    first = await services.sessions.create_session("alice", ADDRESS, ["a-C1"])
    second = await services.sessions.create_session("bob", ADDRESS, ["b-C1"])

    for txn in (first.transaction_id, second.transaction_id):
        payload, digest = gateway.signed_callback(txn, "COMPLETED", amount_paise=25000)
        ack = await services.callbacks.handle_callback(payload, digest)
        assert ack.applied is True

    assert len(store.orders) == 1
    assert store.products["P1"].stock == 0

    paid_without_order = store.sessions[second.transaction_id]
    assert paid_without_order.status == SessionStatus.SUCCESS
    assert paid_without_order.order_id is None
    assert paid_without_order.materialization_state == MaterializationState.FAILED
    assert paid_without_order.materialization_error == "insufficient_stock"
    # the failed attempt left the cart line in place
    assert "b-C1" in store.cart_items

    queue = await services.reconciliation.list_queue()
    assert [s.transaction_id for s in queue] == [second.transaction_id]


@pytest.mark.asyncio
async def test_operator_retry_after_restock(store, gateway, services):
    _single_unit_catalog(store)
    first = await services.sessions.create_session("alice", ADDRESS, ["a-C1"])
    second = await services.sessions.create_session("bob", ADDRESS, ["b-C1"])
    for txn in (first.transaction_id, second.transaction_id):
        payload, digest = gateway.signed_callback(txn, "COMPLETED", amount_paise=25000)
        await services.callbacks.handle_callback(payload, digest)

    with pytest.raises(ReconciliationError) as exc_info:
        await services.reconciliation.retry(second.transaction_id, operator_id="ops-1")
    assert exc_info.value.reason == "insufficient_stock"

    store.products["P1"].stock = 1
    order = await services.reconciliation.retry(second.transaction_id, operator_id="ops-1")

    assert order.transaction_id == second.transaction_id
    assert store.sessions[second.transaction_id].order_id == order.id
    assert store.sessions[second.transaction_id].materialization_state == MaterializationState.COMPLETED
    assert await services.reconciliation.list_queue() == []

    # retrying a linked session returns the same order
    again = await services.reconciliation.retry(second.transaction_id, operator_id="ops-1")
    assert again.id == order.id
    assert len(store.orders) == 2


@pytest.mark.asyncio
async def test_materializing_an_unpaid_session_is_refused(store, services):
    store.add_product("P1", "250.00", stock=1)
    store.add_cart_item("a-C1", "alice", "P1", 1)
    summary = await services.sessions.create_session("alice", ADDRESS, ["a-C1"])

    with pytest.raises(ReconciliationError) as exc_info:
        await services.materializer.materialize(summary.transaction_id)

    assert exc_info.value.reason == "session_not_successful"
    assert store.sessions[summary.transaction_id].materialization_state == MaterializationState.NOT_STARTED


@pytest.mark.asyncio
async def test_list_sessions_filters_by_status(store, gateway, services):
    _single_unit_catalog(store)
    paid = await services.sessions.create_session("alice", ADDRESS, ["a-C1"])
    await services.sessions.create_session("bob", ADDRESS, ["b-C1"])
    payload, digest = gateway.signed_callback(paid.transaction_id, "COMPLETED", amount_paise=25000)
    await services.callbacks.handle_callback(payload, digest)

    pending = await services.reconciliation.list_sessions(SessionStatus.PENDING)
    everything = await services.reconciliation.list_sessions()

    assert [s.user_id for s in pending] == ["bob"]
    assert len(everything) == 2
