"""
Payment specific codes and gateway state mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Gateway errors (6xxxx)
    PROVIDER_ERROR = 60000
    SIGNATURE_ERROR = 60002
    CALLBACK_DECODE_ERROR = 60005
    GATEWAY_TRANSPORT_ERROR = 60006


# Normalized gateway states understood by the checkout pipeline
GATEWAY_STATE_COMPLETED = "COMPLETED"
GATEWAY_STATE_FAILED = "FAILED"
GATEWAY_STATE_PENDING = "PENDING"


# Provider→normalized state mapping (extend per provider)
PROVIDER_STATE_TO_INTERNAL = {
    "phonepe": {
        "COMPLETED": GATEWAY_STATE_COMPLETED,
        "PAYMENT_SUCCESS": GATEWAY_STATE_COMPLETED,
        "FAILED": GATEWAY_STATE_FAILED,
        "PAYMENT_ERROR": GATEWAY_STATE_FAILED,
        "PAYMENT_DECLINED": GATEWAY_STATE_FAILED,
        "TIMED_OUT": GATEWAY_STATE_FAILED,
        "PENDING": GATEWAY_STATE_PENDING,
        "PAYMENT_PENDING": GATEWAY_STATE_PENDING,
    },
    "mock": {
        "COMPLETED": GATEWAY_STATE_COMPLETED,
        "FAILED": GATEWAY_STATE_FAILED,
        "PENDING": GATEWAY_STATE_PENDING,
    },
}
