"""
Business codes carried in every response envelope.

Gateway-related codes live in `shared.codes.payment_codes`; the two ranges
never overlap so core.exceptions can map both through one table.
"""
from enum import IntEnum


class BusinessCode(IntEnum):
    SUCCESS = 0

    # Request errors (1xxxx)
    PARAM_ERROR = 10000
    PARAM_VALIDATION_ERROR = 10003

    # Checkout rule rejections (2xxxx)
    NOT_FOUND = 20006
    PRODUCT_UNAVAILABLE = 20200
    INSUFFICIENT_STOCK = 20201
    RECONCILIATION_REQUIRED = 20202

    # Authorization (3xxxx)
    UNAUTHORIZED = 30001
    FORBIDDEN = 30002

    # System (4xxxx)
    SYSTEM_ERROR = 40000
    SERVICE_UNAVAILABLE = 40003

    TOO_MANY_REQUESTS = 50001


__all__ = ["BusinessCode"]
