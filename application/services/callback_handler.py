"""
Gateway callback (webhook) handling.

Verification always comes first: an unverified payload never reaches the
session store. Duplicate and late deliveries are acknowledged without side
effects so the gateway stops retrying.
"""
from __future__ import annotations

import json
from typing import Optional, Union

from application.dtos.payments import CallbackAck
from application.ports.payment_gateway import PaymentGateway
from application.services.settlement import SessionSettlement
from core.logging_config import get_logger
from domain.common.exceptions import CallbackAuthenticationError


logger = get_logger(__name__)


def extract_callback_payload(body: Union[bytes, str, None]) -> str:
    """Pull the base64 text out of the ``{"response": "..."}`` envelope.

    Anything that is not such an envelope yields an empty string, which then
    fails verification.
    """
    if not body:
        return ""
    try:
        envelope = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return ""
    if not isinstance(envelope, dict):
        return ""
    payload = envelope.get("response")
    return payload if isinstance(payload, str) else ""


class CallbackHandler:
    def __init__(self, gateway: PaymentGateway, settlement: SessionSettlement) -> None:
        self._gateway = gateway
        self._settlement = settlement

    async def handle_callback(self, raw_payload: str, digest_header: Optional[str]) -> CallbackAck:
        """Verify, decode and apply one gateway notification.

        Raises:
            CallbackAuthenticationError: digest mismatch or missing
            CallbackDecodeError: verified but not decodable
            PaymentSessionNotFoundException: no session for the transaction id
        """
        provider = self._gateway.provider
        if not self._gateway.verify_callback(raw_payload, digest_header):
            logger.warning(
                "security_event",
                event_type="callback_verification_failed",
                provider=provider,
                digest_present=bool(digest_header),
                payload_length=len(raw_payload or ""),
            )
            raise CallbackAuthenticationError(provider=provider)

        record = self._gateway.decode_callback(raw_payload)
        logger.info(
            "payment_callback_received",
            provider=provider,
            transaction_id=record.transaction_id,
            gateway_state=record.state,
            gateway_code=record.code,
        )

        outcome = await self._settlement.apply(
            record.transaction_id,
            record.state,
            gateway_transaction_id=record.gateway_transaction_id,
            payment_method=record.payment_method,
            source="callback",
        )
        return CallbackAck(
            transaction_id=record.transaction_id,
            status=outcome.session.status.value,
            applied=outcome.applied,
        )
