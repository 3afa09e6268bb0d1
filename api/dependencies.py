"""
API依赖项 - 认证、授权与结账服务注入
"""
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from application.services.checkout import CheckoutServices
from core.config import settings
from core.exceptions import AdminRequiredException, UnauthorizedException
from core.logging_config import get_logger

import structlog


logger = get_logger(__name__)

# HTTP Bearer for direct API calls
http_bearer = HTTPBearer(
    scheme_name="Bearer",
    description="JWT Bearer token authentication",
    auto_error=False,
)


@dataclass(frozen=True)
class CurrentUser:
    user_id: str
    is_admin: bool = False


async def get_token(
    request: Request,
    bearer_token: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
) -> str:
    """从 Bearer 头或认证 Cookie 中提取 token"""
    # 优先使用 Authorization 头
    if bearer_token and bearer_token.credentials:
        return bearer_token.credentials

    cookie_token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if cookie_token:
        return cookie_token

    raise UnauthorizedException("未提供认证凭据")


def decode_access_token(token: str) -> dict:
    """校验签名与过期时间并返回 claims"""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise UnauthorizedException("认证凭据已过期")
    except jwt.InvalidTokenError:
        raise UnauthorizedException("无效的认证凭据")


async def get_current_user(token: str = Depends(get_token)) -> CurrentUser:
    """获取当前登录用户"""
    claims = decode_access_token(token)
    user_id = claims.get("sub") or claims.get("userId")
    if user_id is None or str(user_id) == "":
        raise UnauthorizedException("无效的认证凭据")

    user = CurrentUser(user_id=str(user_id), is_admin=bool(claims.get("is_admin", False)))
    structlog.contextvars.bind_contextvars(user_id=user.user_id)
    return user


async def require_admin(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """要求运维权限（is_admin 声明）"""
    if not current_user.is_admin:
        logger.warning("admin_access_denied", user_id=current_user.user_id)
        raise AdminRequiredException()
    return current_user


def get_checkout(request: Request) -> CheckoutServices:
    """lifespan 中构建的结账服务"""
    return request.app.state.checkout
