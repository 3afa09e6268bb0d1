"""
Redis 客户端

结账服务只把 Redis 当作跨进程的短期状态存储（例如模拟网关的支付状态），
因此这里只保留带命名空间的 JSON 读写与健康检查。
"""
from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from core.config import settings
from core.logging_config import get_logger

logger = get_logger(__name__)


class RedisClient:
    """命名空间隔离的 JSON 键值存储，读失败返回默认值，写失败返回 False"""

    def __init__(self, client: aioredis.Redis, namespace: str = ""):
        self._client = client
        self._prefix = f"{namespace.strip(':')}:" if namespace.strip(":") else ""

    def key(self, name: str) -> str:
        return f"{self._prefix}{name}"

    async def get(self, name: str, default: Any = None) -> Any:
        full_key = self.key(name)
        try:
            raw = await self._client.get(full_key)
        except RedisError as e:
            logger.error("redis_get_failed", key=full_key, error=str(e))
            return default
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            return raw

    async def set(self, name: str, value: Any, ttl: Optional[int] = None) -> bool:
        """ttl 为空时使用 redis.default_ttl；<=0 表示不过期"""
        full_key = self.key(name)
        expire = settings.redis.default_ttl if ttl is None else ttl
        try:
            ok = await self._client.set(
                full_key,
                json.dumps(value, default=str, ensure_ascii=False),
                ex=expire if expire > 0 else None,
            )
        except RedisError as e:
            logger.error("redis_set_failed", key=full_key, error=str(e))
            return False
        return bool(ok)

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError) as e:
            logger.warning("redis_ping_failed", error=str(e))
            return False

    async def aclose(self) -> None:
        await self._client.aclose()


_instance: Optional[RedisClient] = None
_init_lock = asyncio.Lock()


async def init_redis_client() -> RedisClient:
    """建立全局连接（幂等），连接不可用时抛出 RedisError"""
    global _instance
    async with _init_lock:
        if _instance is not None:
            return _instance
        if not settings.redis.url:
            raise RuntimeError("REDIS__URL 未配置")

        raw = aioredis.from_url(
            settings.redis.url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=settings.redis.max_connections,
        )
        try:
            await raw.ping()
        except (RedisError, OSError):
            await raw.aclose()
            raise
        _instance = RedisClient(raw, namespace=settings.redis.namespace)
        logger.info("redis_initialized", namespace=settings.redis.namespace)
        return _instance


async def shutdown_redis_client() -> None:
    global _instance
    if _instance is None:
        return
    try:
        await _instance.aclose()
        logger.info("redis_closed")
    except RedisError as e:
        logger.error("redis_close_failed", error=str(e))
    finally:
        _instance = None
