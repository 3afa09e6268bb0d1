"""
PhonePe PG (pay page) adapter over httpx.

Request flow:
- POST {base_url}/pg/v1/pay with {"request": base64(json)} and X-VERIFY
- GET  {base_url}/pg/v1/status/{merchant_id}/{transaction_id} with X-VERIFY + X-MERCHANT-ID
- callback: {"response": base64(json)} with X-VERIFY over the base64 text
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

import httpx

from application.dtos.payments import GatewayStatus, InitiateResult
from core.config import settings
from core.settings import PaymentSettings, payment_settings
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.checksum import ChecksumSigner, encode_payload


class PhonePeClient(BasePaymentClient):
    provider = "phonepe"

    def __init__(
        self,
        config: Optional[PaymentSettings] = None,
        *,
        callback_url: Optional[str] = None,
        redirect_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        config = config or payment_settings
        phonepe = config.phonepe
        if not phonepe.merchant_id:
            raise RuntimeError("PAYMENT__PHONEPE__MERCHANT_ID not configured")
        if not phonepe.salt_key:
            raise RuntimeError("PAYMENT__PHONEPE__SALT_KEY not configured")
        super().__init__(
            signer=ChecksumSigner(phonepe.salt_key, phonepe.salt_index),
            timeouts=config.timeouts.model_dump(),
            retry={"max": config.retry.max, "base": config.retry.base_backoff},
            transport=transport,
        )
        self._merchant_id = phonepe.merchant_id
        self._base_url = phonepe.base_url.rstrip("/")
        self._pay_path = phonepe.pay_path
        self._status_path = phonepe.status_path
        self._callback_url = callback_url or settings.checkout.callback_url
        self._redirect_url = redirect_url or settings.checkout.redirect_url

    def _pay_request(
        self, transaction_id: str, amount: Decimal, user_id: str, contact_number: Optional[str]
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "merchantId": self._merchant_id,
            "merchantTransactionId": transaction_id,
            "merchantUserId": str(user_id),
            "amount": self._to_minor(amount),
            "redirectUrl": f"{self._redirect_url}?transactionId={transaction_id}",
            "redirectMode": "POST",
            "callbackUrl": self._callback_url,
            "paymentInstrument": {"type": "PAY_PAGE"},
        }
        if contact_number:
            payload["mobileNumber"] = contact_number
        return payload

    async def initiate(
        self,
        transaction_id: str,
        amount: Decimal,
        user_id: str,
        contact_number: Optional[str] = None,
    ) -> InitiateResult:
        payload_b64 = encode_payload(self._pay_request(transaction_id, amount, user_id, contact_number))
        headers = {
            "Content-Type": "application/json",
            "X-VERIFY": self._signer.sign_request(payload_b64, self._pay_path),
        }

        async def _call() -> httpx.Response:
            async with self.client() as client:
                return await client.post(
                    f"{self._base_url}{self._pay_path}",
                    json={"request": payload_b64},
                    headers=headers,
                )

        resp = await self._retry(_call, operation="initiate")
        self._log("payment_initiate_response", transaction_id=transaction_id, http_status=resp.status_code)

        if resp.status_code >= 300:
            return InitiateResult(success=False, error=f"HTTP {resp.status_code}")

        body = self._json(resp)
        data = body.get("data") or {}
        redirect = ((data.get("instrumentResponse") or {}).get("redirectInfo") or {}).get("url")
        if body.get("success") and redirect:
            return InitiateResult(
                success=True,
                payment_url=redirect,
                gateway_transaction_id=data.get("transactionId"),
            )

        code, message = body.get("code"), body.get("message")
        error = f"[{code}] {message}" if code else (message or "Payment initiation failed")
        return InitiateResult(success=False, error=error)

    async def check_status(self, transaction_id: str) -> GatewayStatus:
        path = f"{self._status_path}/{self._merchant_id}/{transaction_id}"
        headers = {
            "Content-Type": "application/json",
            "X-VERIFY": self._signer.sign_path(path),
            "X-MERCHANT-ID": self._merchant_id,
        }

        async def _call() -> httpx.Response:
            async with self.client() as client:
                return await client.get(f"{self._base_url}{path}", headers=headers)

        resp = await self._retry(_call, operation="check_status")
        self._log("payment_status_response", transaction_id=transaction_id, http_status=resp.status_code)

        if resp.status_code >= 300:
            return GatewayStatus(success=False, code=f"HTTP_{resp.status_code}")

        body = self._json(resp)
        data = body.get("data")
        if not body.get("success") or not isinstance(data, dict):
            return GatewayStatus(success=False, code=body.get("code"), message=body.get("message"))

        instrument = data.get("paymentInstrument") or {}
        return GatewayStatus(
            success=True,
            state=self._map_state(data.get("state")),
            amount=self._from_minor(data.get("amount")),
            payment_method=instrument.get("type") if isinstance(instrument, dict) else None,
            gateway_transaction_id=data.get("transactionId"),
            code=body.get("code"),
        )

    @staticmethod
    def _json(resp: httpx.Response) -> dict[str, Any]:
        try:
            body = resp.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}
