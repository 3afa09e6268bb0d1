import json
from decimal import Decimal

import httpx
import pytest

from core.settings import MockGatewaySettings, PaymentRetry, PaymentSettings, PhonePeSettings
from domain.common.exceptions import GatewayTransportError
from infrastructure.external.payments.checksum import ChecksumSigner, decode_payload
from infrastructure.external.payments.mock_client import InMemoryGatewayStateStore, MockGatewayClient
from infrastructure.external.payments.phonepe_client import PhonePeClient


BASE_URL = "https://pg.test"
TXN = "TXN_U1_1700000000000_ABCDEFGH"


def _config() -> PaymentSettings:
    return PaymentSettings(
        phonepe=PhonePeSettings(merchant_id="MERCHANT", salt_key="salt-123", base_url=BASE_URL),
        retry=PaymentRetry(max=1, base_backoff=0.01),
    )


def _client(handler) -> PhonePeClient:
    return PhonePeClient(
        _config(),
        callback_url="https://shop.test/api/v1/payment/gateway/callback",
        redirect_url="https://shop.test/payment/status",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_initiate_signs_request_and_returns_redirect():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["verify"] = request.headers["X-VERIFY"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "success": True,
                "code": "PAYMENT_INITIATED",
                "data": {
                    "transactionId": "PG123",
                    "instrumentResponse": {"redirectInfo": {"url": "https://pg.test/hosted/abc"}},
                },
            },
        )

    client = _client(handler)
    result = await client.initiate(TXN, Decimal("499.00"), "u1", contact_number="9876543210")
    await client.aclose()

    assert result.success is True
    assert result.payment_url == "https://pg.test/hosted/abc"
    assert result.gateway_transaction_id == "PG123"

    assert seen["url"] == f"{BASE_URL}/pg/v1/pay"
    payload_b64 = seen["body"]["request"]
    assert seen["verify"] == ChecksumSigner("salt-123", "1").sign_request(payload_b64, "/pg/v1/pay")
    payload = decode_payload(payload_b64)
    assert payload["merchantId"] == "MERCHANT"
    assert payload["merchantTransactionId"] == TXN
    assert payload["amount"] == 49900
    assert payload["mobileNumber"] == "9876543210"
    assert payload["callbackUrl"] == "https://shop.test/api/v1/payment/gateway/callback"


@pytest.mark.asyncio
async def test_initiate_reports_gateway_refusal():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": False, "code": "BAD_REQUEST", "message": "Invalid amount"})

    result = await _client(handler).initiate(TXN, Decimal("1.00"), "u1")

    assert result.success is False
    assert result.error == "[BAD_REQUEST] Invalid amount"


@pytest.mark.asyncio
async def test_initiate_non_2xx_is_a_refusal():
    result = await _client(lambda request: httpx.Response(500, text="oops")).initiate(TXN, Decimal("1.00"), "u1")
    assert result.success is False
    assert result.error == "HTTP 500"


@pytest.mark.asyncio
async def test_transport_failure_is_retried_then_raised():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(GatewayTransportError):
        await _client(handler).initiate(TXN, Decimal("1.00"), "u1")
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_check_status_maps_gateway_state():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["verify"] = request.headers["X-VERIFY"]
        seen["merchant"] = request.headers["X-MERCHANT-ID"]
        return httpx.Response(
            200,
            json={
                "success": True,
                "code": "PAYMENT_SUCCESS",
                "data": {
                    "merchantTransactionId": TXN,
                    "transactionId": "PG123",
                    "amount": 49900,
                    "state": "COMPLETED",
                    "paymentInstrument": {"type": "UPI"},
                },
            },
        )

    status = await _client(handler).check_status(TXN)

    assert seen["path"] == f"/pg/v1/status/MERCHANT/{TXN}"
    assert seen["verify"] == ChecksumSigner("salt-123", "1").sign_path(f"/pg/v1/status/MERCHANT/{TXN}")
    assert seen["merchant"] == "MERCHANT"
    assert status.success is True
    assert status.state == "COMPLETED"
    assert status.amount == Decimal("499.00")
    assert status.payment_method == "UPI"


@pytest.mark.asyncio
async def test_check_status_unknown_state_stays_pending():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": True, "data": {"state": "SOMETHING_NEW"}})

    status = await _client(handler).check_status(TXN)
    assert status.state == "PENDING"


def test_phonepe_client_requires_credentials():
    with pytest.raises(RuntimeError):
        PhonePeClient(PaymentSettings(phonepe=PhonePeSettings()))


@pytest.mark.asyncio
async def test_mock_gateway_round_trip():
    gateway = MockGatewayClient(InMemoryGatewayStateStore(), MockGatewaySettings(public_base_url="http://api.test/mock"))

    result = await gateway.initiate(TXN, Decimal("499.00"), "u1")
    assert result.payment_url == f"http://api.test/mock/pay?transactionId={TXN}"
    assert (await gateway.check_status(TXN)).state == "PENDING"
    assert (await gateway.describe(TXN))["amount"] == 499.0

    payload, digest = await gateway.complete(TXN, success=True)

    assert gateway.verify_callback(payload, digest) is True
    record = gateway.decode_callback(payload)
    assert record.transaction_id == TXN
    assert record.state == "COMPLETED"
    assert record.amount == Decimal("499.00")
    assert (await gateway.check_status(TXN)).state == "COMPLETED"

    # completion is settled once; a later "fail" replays the recorded outcome
    payload, _ = await gateway.complete(TXN, success=False)
    assert gateway.decode_callback(payload).state == "COMPLETED"


@pytest.mark.asyncio
async def test_mock_gateway_unknown_transaction():
    gateway = MockGatewayClient(InMemoryGatewayStateStore())
    status = await gateway.check_status("TXN_MISSING")
    assert status.success is False
    assert status.code == "TRANSACTION_NOT_FOUND"
