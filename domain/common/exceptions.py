"""领域异常

每个异常携带业务码（shared.codes），由 core.exceptions 统一映射为 HTTP 状态与响应信封。
领域层不依赖 core 层。
"""
from __future__ import annotations

from typing import Optional

from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class BusinessException(Exception):
    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field


class DomainValidationException(BusinessException):
    """输入不满足领域规则（地址缺字段、空选择、未知状态等）"""

    def __init__(self, message: str, *, field: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )


# ---------------------------------------------------------------------------
# Checkout: lookups and ownership
# ---------------------------------------------------------------------------


class PaymentSessionNotFoundException(BusinessException):
    def __init__(self, transaction_id: str):
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message="Payment session not found",
            error_type="PaymentSessionNotFound",
            details={"transaction_id": transaction_id},
        )


class CartItemsNotFoundException(BusinessException):
    """Some selected cart items are stale or belong to another user."""

    def __init__(self, requested: int, found: int):
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message="Some items not found in your cart",
            error_type="CartItemsNotFound",
            details={"requested": requested, "found": found},
            field="cartItemIds",
        )


class SessionAccessDeniedException(BusinessException):
    def __init__(self, transaction_id: str):
        super().__init__(
            code=BusinessCode.FORBIDDEN,
            message="Payment session belongs to another user",
            error_type="SessionAccessDenied",
            details={"transaction_id": transaction_id},
        )


# ---------------------------------------------------------------------------
# Checkout: business rule rejections
# ---------------------------------------------------------------------------


class ProductUnavailableException(BusinessException):
    def __init__(self, product_ids: list[str]):
        super().__init__(
            code=BusinessCode.PRODUCT_UNAVAILABLE,
            message="Some selected products are no longer available",
            error_type="ProductUnavailable",
            details={"product_ids": product_ids},
        )


class InsufficientStockException(BusinessException):
    def __init__(self, product_id: str, requested: int, available: int, *, name: Optional[str] = None):
        label = name or product_id
        super().__init__(
            code=BusinessCode.INSUFFICIENT_STOCK,
            message=f"Insufficient stock for {label}",
            error_type="InsufficientStock",
            details={"product_id": product_id, "requested": requested, "available": available},
        )


class ReconciliationError(BusinessException):
    """Payment succeeded but the order could not be materialized automatically."""

    def __init__(self, transaction_id: Optional[str], reason: str, *, details: Optional[dict] = None):
        full_details = {"transaction_id": transaction_id, "reason": reason}
        if details:
            full_details.update(details)
        super().__init__(
            code=BusinessCode.RECONCILIATION_REQUIRED,
            message=f"Order materialization requires reconciliation: {reason}",
            error_type="ReconciliationRequired",
            details=full_details,
        )
        self.transaction_id = transaction_id
        self.reason = reason


# ---------------------------------------------------------------------------
# Gateway signals
# ---------------------------------------------------------------------------


class PaymentInitiationError(BusinessException):
    """The gateway answered but refused to start the payment."""

    def __init__(self, message: str, *, provider: str, transaction_id: Optional[str] = None):
        super().__init__(
            code=PaymentCode.PROVIDER_ERROR,
            message=message,
            error_type="PaymentInitiationError",
            details={"provider": provider, "transaction_id": transaction_id},
        )


class GatewayTransportError(BusinessException):
    """Gateway unreachable (timeout, DNS, TLS). Never mutates session state."""

    def __init__(self, message: str, *, provider: str, operation: Optional[str] = None):
        super().__init__(
            code=PaymentCode.GATEWAY_TRANSPORT_ERROR,
            message=message,
            error_type="GatewayTransportError",
            details={"provider": provider, "operation": operation},
        )


class CallbackAuthenticationError(BusinessException):
    """Checksum mismatch on a gateway callback."""

    def __init__(self, *, provider: str):
        super().__init__(
            code=PaymentCode.SIGNATURE_ERROR,
            message="Invalid callback",
            error_type="CallbackRejected",
            details={"provider": provider},
        )


class CallbackDecodeError(BusinessException):
    def __init__(self, reason: str, *, provider: str):
        super().__init__(
            code=PaymentCode.CALLBACK_DECODE_ERROR,
            message="Malformed callback payload",
            error_type="CallbackDecodeError",
            details={"provider": provider, "reason": reason},
        )
