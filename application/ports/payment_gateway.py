"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters
(PhonePe-style HTTP client, Redis-backed mock gateway).
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional, Protocol, runtime_checkable

from application.dtos.payments import CallbackRecord, GatewayStatus, InitiateResult


@runtime_checkable
class PaymentGateway(Protocol):
    """Gateway protocol for hosted-checkout payment providers.

    ``initiate`` and ``check_status`` report gateway-side refusals in their
    result objects and raise ``GatewayTransportError`` only when the gateway
    could not be reached. ``verify_callback`` never raises.
    """

    provider: str

    def generate_transaction_id(self, user_id: str) -> str: ...

    async def initiate(
        self,
        transaction_id: str,
        amount: Decimal,
        user_id: str,
        contact_number: Optional[str] = None,
    ) -> InitiateResult: ...

    async def check_status(self, transaction_id: str) -> GatewayStatus: ...

    def verify_callback(self, raw_payload: str, supplied_digest: Optional[str]) -> bool: ...

    def decode_callback(self, raw_payload: str) -> CallbackRecord: ...

    async def aclose(self) -> None: ...
