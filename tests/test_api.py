from decimal import Decimal

import httpx
import jwt
import pytest
import pytest_asyncio

from application.services.checkout import build_checkout_services
from core.config import settings
from infrastructure.database import build_engine, build_session_factory, create_tables
from infrastructure.external.payments.checksum import encode_payload
from infrastructure.external.payments.mock_client import InMemoryGatewayStateStore, MockGatewayClient
from infrastructure.models import CartItemModel, ProductModel
from infrastructure.unit_of_work import sqlalchemy_uow_factory
from main import app
from tests.fakes import ADDRESS


def _token(user_id: str, **claims) -> str:
    return jwt.encode({"sub": user_id, **claims}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def _auth(user_id: str = "u1", **claims) -> dict:
    return {"Authorization": f"Bearer {_token(user_id, **claims)}"}


CHECKOUT_BODY = {"shippingAddress": ADDRESS, "cartItemIds": ["C1", "C2"]}


@pytest_asyncio.fixture
async def client(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    await create_tables(bind=engine)
    factory = build_session_factory(engine)
    async with factory() as db:
        db.add_all(
            [
                ProductModel(id="P1", name="Kettle", price=Decimal("199.00"), stock=5),
                ProductModel(id="P2", name="Mug", price=Decimal("150.00"), stock=3),
            ]
        )
        await db.flush()
        db.add_all(
            [
                CartItemModel(id="C1", user_id="u1", product_id="P1", quantity=1),
                CartItemModel(id="C2", user_id="u1", product_id="P2", quantity=2),
            ]
        )
        await db.commit()

    gateway = MockGatewayClient(InMemoryGatewayStateStore())
    app.state.checkout = build_checkout_services(sqlalchemy_uow_factory(factory), gateway)
    app.state.redis = None
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    await engine.dispose()


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["data"] == {"status": "healthy", "gateway": "mock", "redis": "disabled"}
    assert resp.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_create_session_requires_authentication(client):
    resp = await client.post("/api/v1/payment/create-session", json=CHECKOUT_BODY)
    assert resp.status_code == 401

    resp = await client.post(
        "/api/v1/payment/create-session",
        json=CHECKOUT_BODY,
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_create_session_and_pay_through_mock_gateway(client):
    resp = await client.post("/api/v1/payment/create-session", json=CHECKOUT_BODY, headers=_auth())
    assert resp.status_code == 201
    data = resp.json()["data"]
    txn = data["transactionId"]
    assert data["amount"] == 499.0
    assert data["paymentUrl"].endswith(f"/pay?transactionId={txn}")
    assert data["expiresAt"].endswith("Z")

    page = await client.get("/api/v1/payment/mock/pay", params={"transactionId": txn})
    assert page.status_code == 200
    assert txn in page.text

    done = await client.post(f"/api/v1/payment/mock/complete/{txn}", params={"success": "true"})
    assert done.status_code == 200
    assert done.json()["data"] == {"transactionId": txn, "status": "SUCCESS", "applied": True}

    status = await client.get(f"/api/v1/payment/status/{txn}", headers=_auth())
    assert status.status_code == 200
    view = status.json()["data"]
    assert view["status"] == "SUCCESS"
    assert view["materializationState"] == "COMPLETED"
    assert view["order"]["totalAmount"] == 499.0
    assert len(view["order"]["items"]) == 2


@pytest.mark.asyncio
async def test_status_is_owner_only(client):
    resp = await client.post("/api/v1/payment/create-session", json=CHECKOUT_BODY, headers=_auth())
    txn = resp.json()["data"]["transactionId"]

    assert (await client.get(f"/api/v1/payment/status/{txn}", headers=_auth("u2"))).status_code == 403
    assert (await client.get("/api/v1/payment/status/TXN_NOPE", headers=_auth())).status_code == 404


@pytest.mark.asyncio
async def test_cookie_token_is_accepted(client):
    cookie = {"Cookie": f"{settings.AUTH_COOKIE_NAME}={_token('u1')}"}
    resp = await client.post("/api/v1/payment/create-session", json=CHECKOUT_BODY, headers=cookie)
    assert resp.status_code == 201


@pytest.mark.asyncio
async def test_checkout_validation_errors(client):
    body = {"shippingAddress": {**ADDRESS, "pincode": ""}, "cartItemIds": ["C1"]}
    resp = await client.post("/api/v1/payment/create-session", json=body, headers=_auth())
    assert resp.status_code == 400
    assert resp.json()["error"]["field"] == "shippingAddress.pincode"

    resp = await client.post(
        "/api/v1/payment/create-session", json={**CHECKOUT_BODY, "cartItemIds": ["C9"]}, headers=_auth()
    )
    assert resp.status_code == 404

    resp = await client.post(
        "/api/v1/payment/create-session", json={**CHECKOUT_BODY, "cartItemIds": "C1"}, headers=_auth()
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_callback_rejects_bad_signature(client):
    resp = await client.post("/api/v1/payment/create-session", json=CHECKOUT_BODY, headers=_auth())
    txn = resp.json()["data"]["transactionId"]
    forged = encode_payload({"success": True, "data": {"merchantTransactionId": txn, "state": "COMPLETED"}})

    resp = await client.post(
        "/api/v1/payment/gateway/callback",
        json={"response": forged},
        headers={"X-VERIFY": "deadbeef###1"},
    )
    assert resp.status_code == 400

    resp = await client.post("/api/v1/payment/gateway/callback", content=b"garbage")
    assert resp.status_code == 400

    status = await client.get(f"/api/v1/payment/status/{txn}", headers=_auth())
    assert status.json()["data"]["status"] == "PENDING"


@pytest.mark.asyncio
async def test_signed_callback_for_unknown_transaction_is_404(client):
    gateway = app.state.checkout.gateway
    payload = encode_payload({"success": True, "data": {"merchantTransactionId": "TXN_GHOST", "state": "COMPLETED"}})
    resp = await client.post(
        "/api/v1/payment/gateway/callback",
        json={"response": payload},
        headers={"X-VERIFY": gateway._signer.sign_callback(payload)},
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_cod_order(client):
    resp = await client.post("/api/v1/payment/cod-order", json=CHECKOUT_BODY, headers=_auth())
    assert resp.status_code == 201
    order = resp.json()["data"]
    assert order["paymentMethod"] == "COD"
    assert order["paymentStatus"] == "PENDING"
    assert order["totalAmount"] == 499.0


@pytest.mark.asyncio
async def test_admin_routes_require_admin_claim(client):
    await client.post("/api/v1/payment/create-session", json=CHECKOUT_BODY, headers=_auth())

    assert (await client.get("/api/v1/payment/admin/sessions", headers=_auth())).status_code == 403

    resp = await client.get(
        "/api/v1/payment/admin/sessions", params={"status": "pending"}, headers=_auth("ops", is_admin=True)
    )
    assert resp.status_code == 200
    page = resp.json()["data"]
    assert page["count"] == 1
    assert page["items"][0]["userId"] == "u1"

    resp = await client.get(
        "/api/v1/payment/admin/sessions", params={"status": "bogus"}, headers=_auth("ops", is_admin=True)
    )
    assert resp.status_code == 400

    resp = await client.get("/api/v1/payment/admin/reconciliation", headers=_auth("ops", is_admin=True))
    assert resp.status_code == 200
    assert resp.json()["data"]["items"] == []


@pytest.mark.asyncio
async def test_admin_retry_of_unpaid_session_is_conflict(client):
    resp = await client.post("/api/v1/payment/create-session", json=CHECKOUT_BODY, headers=_auth())
    txn = resp.json()["data"]["transactionId"]

    resp = await client.post(
        f"/api/v1/payment/admin/reconciliation/{txn}/retry", headers=_auth("ops", is_admin=True)
    )
    assert resp.status_code == 409
