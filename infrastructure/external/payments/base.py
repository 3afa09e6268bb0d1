"""
Base payment client implementing shared concerns: http, retry, logging,
transaction ids and the checksum-signed callback format.

Concrete providers subclass and implement initiate/check_status.
"""
from __future__ import annotations

import secrets
import string
import threading
import time
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential, retry_if_exception_type

from application.dtos.payments import CallbackRecord, GatewayStatus, InitiateResult
from core.logging_config import get_logger
from domain.common.exceptions import CallbackDecodeError, GatewayTransportError
from infrastructure.external.payments.checksum import ChecksumSigner, decode_payload
from shared.codes.payment_codes import GATEWAY_STATE_PENDING, PROVIDER_STATE_TO_INTERNAL


logger = get_logger(__name__)

T = TypeVar("T")

_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


class TransactionIdGenerator:
    """TXN_<USER>_<MILLIS>_<RAND>; millis strictly increase within the process."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._last_ms = 0
        self._mutex = threading.Lock()

    def _next_millis(self) -> int:
        with self._mutex:
            now_ms = int(self._clock() * 1000)
            self._last_ms = now_ms if now_ms > self._last_ms else self._last_ms + 1
            return self._last_ms

    def __call__(self, user_id: str) -> str:
        user = "".join(ch for ch in str(user_id) if ch.isalnum()) or "ANON"
        suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(8))
        return f"TXN_{user}_{self._next_millis()}_{suffix}".upper()


class BasePaymentClient:
    provider: str = "base"

    def __init__(
        self,
        *,
        signer: ChecksumSigner,
        timeouts: Optional[dict[str, float]] = None,
        retry: Optional[dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._signer = signer
        self._timeouts_cfg = timeouts or {"connect": 1.0, "read": 3.0, "write": 3.0, "total": 5.0}
        self._retry_cfg = retry or {"max": 2, "base": 0.2}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._txn_ids = TransactionIdGenerator()

    @property
    def timeouts(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self._timeouts_cfg["connect"],
            read=self._timeouts_cfg["read"],
            write=self._timeouts_cfg["write"],
            timeout=self._timeouts_cfg["total"],
        )

    @asynccontextmanager
    async def client(self):
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeouts, transport=self._transport)
        # Keep open for reuse; explicit aclose() will close.
        yield self._client

    async def aclose(self) -> None:
        """Close underlying HTTP client if created."""
        if self._client is not None:
            try:
                await self._client.aclose()
            finally:
                self._client = None

    async def _retry(self, fn: Callable[[], Awaitable[T]], *, operation: str) -> T:
        """Retry transport failures, then surface them as GatewayTransportError."""
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(int(self._retry_cfg["max"]) + 1),
                wait=wait_exponential(multiplier=self._retry_cfg["base"], min=0.1, max=2.0),
                retry=retry_if_exception_type((httpx.TimeoutException, httpx.TransportError)),
                reraise=True,
            ):
                with attempt:
                    return await fn()
        except (httpx.TimeoutException, httpx.TransportError) as exc:
            logger.warning(
                "gateway_transport_error",
                provider=self.provider,
                operation=operation,
                error=repr(exc),
            )
            raise GatewayTransportError(
                f"Payment gateway unreachable during {operation}",
                provider=self.provider,
                operation=operation,
            ) from exc
        raise AssertionError("unreachable")  # pragma: no cover

    # PaymentGateway contract

    def generate_transaction_id(self, user_id: str) -> str:
        return self._txn_ids(user_id)

    async def initiate(
        self,
        transaction_id: str,
        amount: Decimal,
        user_id: str,
        contact_number: Optional[str] = None,
    ) -> InitiateResult:
        raise NotImplementedError

    async def check_status(self, transaction_id: str) -> GatewayStatus:
        raise NotImplementedError

    def verify_callback(self, raw_payload: str, supplied_digest: Optional[str]) -> bool:
        return self._signer.verify_callback(raw_payload, supplied_digest)

    def decode_callback(self, raw_payload: str) -> CallbackRecord:
        try:
            body = decode_payload(raw_payload)
        except ValueError as exc:
            raise CallbackDecodeError(str(exc), provider=self.provider) from exc

        data = body.get("data")
        if not isinstance(data, dict):
            raise CallbackDecodeError("missing data object", provider=self.provider)
        transaction_id = data.get("merchantTransactionId")
        if not transaction_id or not isinstance(transaction_id, str):
            raise CallbackDecodeError("missing merchantTransactionId", provider=self.provider)

        instrument = data.get("paymentInstrument") or {}
        return CallbackRecord(
            transaction_id=transaction_id,
            state=self._map_state(data.get("state")),
            success=bool(body.get("success")),
            code=body.get("code"),
            gateway_transaction_id=data.get("transactionId"),
            amount=self._from_minor(data.get("amount")),
            payment_method=instrument.get("type") if isinstance(instrument, dict) else None,
        )

    # Helpers

    @staticmethod
    def _to_minor(amount: Decimal) -> int:
        # Gateway amounts are in paise
        return int((Decimal(amount) * 100).to_integral_value())

    @staticmethod
    def _from_minor(value: Any) -> Optional[Decimal]:
        if value is None:
            return None
        try:
            return (Decimal(str(value)) / 100).quantize(Decimal("0.01"))
        except ArithmeticError:
            return None

    def _map_state(self, provider_state: Optional[str]) -> str:
        if not provider_state:
            return GATEWAY_STATE_PENDING
        mapping = PROVIDER_STATE_TO_INTERNAL.get(self.provider, {})
        return mapping.get(str(provider_state).upper(), GATEWAY_STATE_PENDING)

    def _log(self, event: str, **kwargs) -> None:
        logger.info(
            event,
            provider=self.provider,
            **kwargs,
        )
