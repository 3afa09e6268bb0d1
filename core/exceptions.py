"""
HTTP 层异常：认证异常、业务码到 HTTP 状态的映射、全局异常处理器
"""
import traceback
import uuid
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status as http_status
from starlette.exceptions import HTTPException

from core.logging_config import get_logger
from domain.common.exceptions import BusinessException
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode

from .response import error_response


class UnauthorizedException(BusinessException):
    """缺失、无效或过期的访问令牌"""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(code=BusinessCode.UNAUTHORIZED, message=message, error_type="Unauthorized")


class AdminRequiredException(BusinessException):
    def __init__(self):
        super().__init__(code=BusinessCode.FORBIDDEN, message="Admin privileges required", error_type="Forbidden")


_BAD_REQUEST = http_status.HTTP_400_BAD_REQUEST

# BusinessCode 与 PaymentCode 数值区间不重叠，合并为一张表；未列出的码按 400 处理
_HTTP_STATUS_BY_CODE: dict[int, int] = {
    BusinessCode.NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
    BusinessCode.RECONCILIATION_REQUIRED: http_status.HTTP_409_CONFLICT,
    BusinessCode.FORBIDDEN: http_status.HTTP_403_FORBIDDEN,
    BusinessCode.UNAUTHORIZED: http_status.HTTP_401_UNAUTHORIZED,
    BusinessCode.SYSTEM_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
    BusinessCode.SERVICE_UNAVAILABLE: http_status.HTTP_503_SERVICE_UNAVAILABLE,
    BusinessCode.TOO_MANY_REQUESTS: http_status.HTTP_429_TOO_MANY_REQUESTS,
    PaymentCode.PROVIDER_ERROR: http_status.HTTP_502_BAD_GATEWAY,
    PaymentCode.GATEWAY_TRANSPORT_ERROR: http_status.HTTP_503_SERVICE_UNAVAILABLE,
}

_CODE_BY_HTTP_STATUS: dict[int, int] = {
    401: BusinessCode.UNAUTHORIZED,
    403: BusinessCode.FORBIDDEN,
    404: BusinessCode.NOT_FOUND,
    405: BusinessCode.PARAM_ERROR,
    429: BusinessCode.TOO_MANY_REQUESTS,
    503: BusinessCode.SERVICE_UNAVAILABLE,
}


def business_code_to_http_status(code: int) -> int:
    return _HTTP_STATUS_BY_CODE.get(int(code), _BAD_REQUEST)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def _envelope(request: Request, status_code: int, *, headers: Optional[dict] = None, **error) -> JSONResponse:
    body = error_response(request_id=_request_id(request), **error)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"), headers=headers)


def _jsonable_errors(errors: list) -> list:
    # pydantic 错误的 ctx 里可能是异常对象
    cleaned = []
    for err in errors:
        item = {k: v for k, v in err.items() if k != "url"}
        if isinstance(item.get("ctx"), dict):
            item["ctx"] = {k: str(v) for k, v in item["ctx"].items()}
        cleaned.append(item)
    return cleaned


def register_exception_handlers(app: FastAPI) -> None:
    logger = get_logger(__name__)

    @app.exception_handler(BusinessException)
    async def business_exception_handler(request: Request, exc: BusinessException):
        status_code = business_code_to_http_status(exc.code)
        if status_code >= 500:
            logger.warning("business_exception", code=int(exc.code), error_type=exc.error_type, error=exc.message)
        headers = {"WWW-Authenticate": "Bearer"} if status_code == http_status.HTTP_401_UNAUTHORIZED else None
        return _envelope(
            request,
            status_code,
            headers=headers,
            code=exc.code,
            message=exc.message,
            error_type=exc.error_type,
            details=exc.details,
            field=exc.field,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        # loc 第一段是 body/query/path
        field = ".".join(str(loc) for loc in first.get("loc", [])[1:])
        return _envelope(
            request,
            http_status.HTTP_422_UNPROCESSABLE_ENTITY,
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=f"Validation failed: {first.get('msg', 'unknown')}",
            error_type="ValidationError",
            details={"errors": _jsonable_errors(errors)},
            field=field,
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return _envelope(
            request,
            exc.status_code,
            headers=getattr(exc, "headers", None),
            code=_CODE_BY_HTTP_STATUS.get(exc.status_code, BusinessCode.SYSTEM_ERROR),
            message=str(exc.detail),
            error_type="HTTPError",
            details={"status_code": exc.status_code},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error("unhandled_exception", request_id=_request_id(request), error=str(exc), exc_info=True)
        details = {"exception": str(exc), "traceback": traceback.format_exc()} if app.debug else None
        return _envelope(
            request,
            http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            code=BusinessCode.SYSTEM_ERROR,
            message="Internal server error",
            error_type="SystemError",
            details=details,
        )
