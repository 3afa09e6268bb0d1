"""Checkout services against the SQLAlchemy repositories on SQLite."""
from datetime import timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import select

from application.services.checkout import build_checkout_services
from domain.checkout.entity import MaterializationState, SessionStatus
from infrastructure.database import build_engine, build_session_factory, create_tables
from infrastructure.models import CartItemModel, OrderModel, ProductModel
from infrastructure.unit_of_work import sqlalchemy_uow_factory
from tests.fakes import ADDRESS, FakeGateway, utcnow


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'checkout.db'}")
    await create_tables(bind=engine)
    factory = build_session_factory(engine)
    async with factory() as db:
        db.add_all(
            [
                ProductModel(id="P1", name="Kettle", price=Decimal("199.00"), stock=5),
                ProductModel(id="P2", name="Mug", price=Decimal("150.00"), stock=3),
                ProductModel(id="P3", name="Lamp", price=Decimal("250.00"), stock=1),
            ]
        )
        await db.flush()
        db.add_all(
            [
                CartItemModel(id="C1", user_id="u1", product_id="P1", quantity=1),
                CartItemModel(id="C2", user_id="u1", product_id="P2", quantity=2),
                CartItemModel(id="A1", user_id="alice", product_id="P3", quantity=1),
                CartItemModel(id="B1", user_id="bob", product_id="P3", quantity=1),
            ]
        )
        await db.commit()
    yield factory
    await engine.dispose()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def services(session_factory, gateway):
    return build_checkout_services(sqlalchemy_uow_factory(session_factory), gateway)


async def _stock(factory, product_id):
    async with factory() as db:
        return (await db.execute(select(ProductModel.stock).where(ProductModel.id == product_id))).scalar_one()


async def _cart_ids(factory):
    async with factory() as db:
        return set((await db.execute(select(CartItemModel.id))).scalars().all())


@pytest.mark.asyncio
async def test_paid_session_becomes_an_order(session_factory, gateway, services):
    summary = await services.sessions.create_session("u1", ADDRESS, ["C1", "C2"])
    assert summary.amount == Decimal("499.00")

    payload, digest = gateway.signed_callback(summary.transaction_id, "COMPLETED")
    first = await services.callbacks.handle_callback(payload, digest)
    second = await services.callbacks.handle_callback(payload, digest)

    assert (first.applied, second.applied) == (True, False)

    view = await services.poller.poll(summary.transaction_id, "u1")
    assert view.status == SessionStatus.SUCCESS.value
    assert view.materialization_state == MaterializationState.COMPLETED.value
    assert view.order.total_amount == Decimal("499.00")
    assert len(view.order.items) == 2

    assert await _stock(session_factory, "P1") == 4
    assert await _stock(session_factory, "P2") == 1
    assert await _cart_ids(session_factory) == {"A1", "B1"}
    async with session_factory() as db:
        orders = (await db.execute(select(OrderModel))).unique().scalars().all()
    assert len(orders) == 1
    assert orders[0].transaction_id == summary.transaction_id


@pytest.mark.asyncio
async def test_expiry_compare_and_set(session_factory, gateway, services):
    summary = await services.sessions.create_session(
        "u1", ADDRESS, ["C1"], now=utcnow() - timedelta(minutes=30)
    )

    assert await services.reaper.run_once() == 1
    assert await services.reaper.run_once() == 0

    payload, digest = gateway.signed_callback(summary.transaction_id, "COMPLETED")
    ack = await services.callbacks.handle_callback(payload, digest)

    assert ack.applied is False
    assert ack.status == SessionStatus.EXPIRED.value
    assert await _stock(session_factory, "P1") == 5


@pytest.mark.asyncio
async def test_last_unit_goes_to_the_first_payment(session_factory, gateway, services):
    alice = await services.sessions.create_session("alice", ADDRESS, ["A1"])
    bob = await services.sessions.create_session("bob", ADDRESS, ["B1"])

    for txn in (alice.transaction_id, bob.transaction_id):
        payload, digest = gateway.signed_callback(txn, "COMPLETED", amount_paise=25000)
        await services.callbacks.handle_callback(payload, digest)

    assert await _stock(session_factory, "P3") == 0
    queue = await services.reconciliation.list_queue()
    assert [s.transaction_id for s in queue] == [bob.transaction_id]
    assert queue[0].materialization_state == MaterializationState.FAILED.value
    assert await _cart_ids(session_factory) == {"C1", "C2", "B1"}


@pytest.mark.asyncio
async def test_cod_order_persists_items(session_factory, services):
    order = await services.cod.place_order("u1", ADDRESS, ["C1", "C2"])

    async with session_factory() as db:
        stored = (await db.execute(select(OrderModel).where(OrderModel.id == order.id))).unique().scalar_one()
        assert stored.payment_method == "COD"
        assert sorted(i.product_id for i in stored.items) == ["P1", "P2"]
    assert await _stock(session_factory, "P2") == 1
