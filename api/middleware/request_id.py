"""
Request ID 中间件
用于生成或透传追踪ID，并通过contextvars传递给日志系统
"""
import uuid
from contextvars import ContextVar
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

import structlog


request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
client_ip_var: ContextVar[Optional[str]] = ContextVar("client_ip", default=None)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Request ID 追踪中间件

    1. 从请求头获取（X-Request-ID，其次网关的 X-Correlation-ID）或生成 request_id
    2. 绑定到 structlog contextvars，本请求内所有日志自动携带
    3. 在响应头中返回 request_id
    """

    HEADER_NAME = "X-Request-ID"
    FALLBACK_HEADERS = ("X-Correlation-ID",)

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(self.HEADER_NAME)
        for header in self.FALLBACK_HEADERS:
            if request_id:
                break
            request_id = request.headers.get(header)
        # 限制长度，避免日志被超长头污染
        request_id = (request_id or str(uuid.uuid4()))[:128]

        client_ip = _client_ip(request)

        request.state.request_id = request_id
        request.state.client_ip = client_ip
        request_id_var.set(request_id)
        client_ip_var.set(client_ip)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            client_ip=client_ip,
            method=request.method,
            path=request.url.path,
        )

        response = await call_next(request)
        response.headers[self.HEADER_NAME] = request_id
        return response


def _client_ip(request: Request) -> str:
    """X-Forwarded-For 首个地址 > X-Real-IP > 直连地址"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def get_request_id() -> Optional[str]:
    """当前请求的 request_id（请求上下文外为 None）"""
    return request_id_var.get()


def get_client_ip() -> Optional[str]:
    return client_ip_var.get()
