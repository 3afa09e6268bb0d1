"""
Mock hosted-checkout gateway for development and demos.

Speaks the same contract and checksum scheme as the real adapter. Payment
state lives in an external store (Redis in deployments) so any API worker
can serve the pay page, the completion and the status query.
"""
from __future__ import annotations

import secrets
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional, Protocol

from application.dtos.payments import GatewayStatus, InitiateResult
from core.settings import MockGatewaySettings, payment_settings
from domain.common.exceptions import PaymentSessionNotFoundException
from infrastructure.external.cache.redis_client import RedisClient
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.checksum import ChecksumSigner, encode_payload
from shared.codes.payment_codes import (
    GATEWAY_STATE_COMPLETED,
    GATEWAY_STATE_FAILED,
    GATEWAY_STATE_PENDING,
)


class GatewayStateStore(Protocol):
    async def load(self, transaction_id: str) -> Optional[dict[str, Any]]: ...

    async def save(self, transaction_id: str, state: dict[str, Any], ttl_seconds: int) -> None: ...


class RedisGatewayStateStore:
    def __init__(self, redis: RedisClient, prefix: str = "mockpg") -> None:
        self._redis = redis
        self._prefix = prefix

    def _key(self, transaction_id: str) -> str:
        return f"{self._prefix}:{transaction_id}"

    async def load(self, transaction_id: str) -> Optional[dict[str, Any]]:
        value = await self._redis.get(self._key(transaction_id))
        return value if isinstance(value, dict) else None

    async def save(self, transaction_id: str, state: dict[str, Any], ttl_seconds: int) -> None:
        await self._redis.set(self._key(transaction_id), state, ttl=ttl_seconds)


class InMemoryGatewayStateStore:
    """Single-process store for local runs without Redis."""

    def __init__(self) -> None:
        self._states: dict[str, dict[str, Any]] = {}

    async def load(self, transaction_id: str) -> Optional[dict[str, Any]]:
        state = self._states.get(transaction_id)
        return dict(state) if state else None

    async def save(self, transaction_id: str, state: dict[str, Any], ttl_seconds: int) -> None:
        self._states[transaction_id] = dict(state)


class MockGatewayClient(BasePaymentClient):
    provider = "mock"

    def __init__(self, store: GatewayStateStore, config: Optional[MockGatewaySettings] = None):
        config = config or payment_settings.mock
        super().__init__(signer=ChecksumSigner(config.salt_key, config.salt_index))
        self._store = store
        self._config = config

    @property
    def public_base_url(self) -> str:
        return self._config.public_base_url

    async def initiate(
        self,
        transaction_id: str,
        amount: Decimal,
        user_id: str,
        contact_number: Optional[str] = None,
    ) -> InitiateResult:
        gateway_txn = f"MOCK{secrets.token_hex(8).upper()}"
        await self._store.save(
            transaction_id,
            {
                "transaction_id": transaction_id,
                "gateway_transaction_id": gateway_txn,
                "user_id": str(user_id),
                "amount": self._to_minor(amount),
                "state": GATEWAY_STATE_PENDING,
                "created_at": datetime.now(timezone.utc).isoformat(),
            },
            self._config.state_ttl_seconds,
        )
        self._log("payment_initiate_response", transaction_id=transaction_id, gateway_transaction_id=gateway_txn)
        return InitiateResult(
            success=True,
            payment_url=f"{self._config.public_base_url.rstrip('/')}/pay?transactionId={transaction_id}",
            gateway_transaction_id=gateway_txn,
        )

    async def check_status(self, transaction_id: str) -> GatewayStatus:
        state = await self._store.load(transaction_id)
        if state is None:
            return GatewayStatus(success=False, code="TRANSACTION_NOT_FOUND")
        return GatewayStatus(
            success=True,
            state=self._map_state(state.get("state")),
            amount=self._from_minor(state.get("amount")),
            payment_method=state.get("payment_method"),
            gateway_transaction_id=state.get("gateway_transaction_id"),
        )

    async def describe(self, transaction_id: str) -> dict[str, Any]:
        """What the hosted pay page shows."""
        state = await self._store.load(transaction_id)
        if state is None:
            raise PaymentSessionNotFoundException(transaction_id)
        return {
            "transactionId": transaction_id,
            "amount": float(self._from_minor(state.get("amount")) or 0),
            "state": state.get("state"),
        }

    async def complete(self, transaction_id: str, *, success: bool, method: str = "UPI") -> tuple[str, str]:
        """Settle the mock payment and return the signed callback (payload, X-VERIFY)."""
        state = await self._store.load(transaction_id)
        if state is None:
            raise PaymentSessionNotFoundException(transaction_id)

        outcome = GATEWAY_STATE_COMPLETED if success else GATEWAY_STATE_FAILED
        if state.get("state") == GATEWAY_STATE_PENDING:
            state["state"] = outcome
            state["payment_method"] = method
            await self._store.save(transaction_id, state, self._config.state_ttl_seconds)

        payload = encode_payload(
            {
                "success": state["state"] == GATEWAY_STATE_COMPLETED,
                "code": "PAYMENT_SUCCESS" if state["state"] == GATEWAY_STATE_COMPLETED else "PAYMENT_ERROR",
                "message": "Mock payment settled",
                "data": {
                    "merchantId": self._config.merchant_id,
                    "merchantTransactionId": transaction_id,
                    "transactionId": state.get("gateway_transaction_id"),
                    "amount": state.get("amount"),
                    "state": state["state"],
                    "paymentInstrument": {"type": state.get("payment_method") or method},
                },
            }
        )
        self._log("mock_payment_completed", transaction_id=transaction_id, state=state["state"])
        return payload, self._signer.sign_callback(payload)
