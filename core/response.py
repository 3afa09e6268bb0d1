"""
统一响应信封：{code, message, data, error}
"""
from datetime import datetime, timezone
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field, field_serializer

from shared.codes import BusinessCode


T = TypeVar("T")


class ErrorDetail(BaseModel):
    type: str
    details: Optional[dict] = None
    field: Optional[str] = None
    request_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer("timestamp")
    def _utc_z(self, ts: datetime) -> str:
        """UTC ISO8601，以 Z 结尾"""
        ts = ts.replace(tzinfo=timezone.utc) if ts.tzinfo is None else ts.astimezone(timezone.utc)
        return ts.isoformat().replace("+00:00", "Z")


class Response(BaseModel, Generic[T]):
    code: int
    message: str
    data: Optional[T] = None
    error: Optional[ErrorDetail] = None


class OffsetPage(BaseModel, Generic[T]):
    """运维列表接口的 skip/limit 分页；count 为本页条数"""
    items: list[T]
    skip: int
    limit: int
    count: int


def success_response(data: Any = None, message: str = "Success", code: int = BusinessCode.SUCCESS) -> Response:
    return Response(code=code, message=message, data=data)


def error_response(
    code: int,
    message: str,
    error_type: str = "BusinessError",
    details: Optional[dict] = None,
    field: Optional[str] = None,
    request_id: Optional[str] = None,
) -> Response:
    """
    构造错误响应

    Args:
        code: 业务状态码（见 shared.codes.BusinessCode）
        error_type: 异常类名，便于客户端分支处理
        field: 校验失败的字段
        request_id: 与响应头 X-Request-ID 一致
    """
    error = ErrorDetail(type=error_type, details=details, field=field, request_id=request_id)
    return Response(code=code, message=message, error=error)


def offset_page_response(items: list, skip: int, limit: int, message: str = "Success") -> Response[OffsetPage]:
    page = OffsetPage(items=items, skip=skip, limit=limit, count=len(items))
    return Response(code=BusinessCode.SUCCESS, message=message, data=page)
