"""
结账服务入口：组装支付会话、回调、过期清理等服务并挂载 HTTP 路由
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError

from api.middleware import LoggingMiddleware, RequestIDMiddleware
from api.routes import payments as payments_routes
from application.ports.notifier import NullOrderNotifier, OrderNotifier
from application.services.checkout import build_checkout_services
from core.config import settings
from core.exceptions import register_exception_handlers
from core.logging_config import get_logger
from core.response import success_response
from infrastructure.database import create_tables, dispose_engine
from infrastructure.external.cache import RedisClient, init_redis_client, shutdown_redis_client
from infrastructure.external.payments import get_payment_gateway
from infrastructure.tasks import CeleryOrderNotifier
from infrastructure.unit_of_work import sqlalchemy_uow_factory


logger = get_logger(__name__)


def _build_notifier() -> OrderNotifier:
    return CeleryOrderNotifier() if settings.checkout.notify_on_order else NullOrderNotifier()


async def _connect_redis() -> Optional[RedisClient]:
    if not settings.redis.url:
        return None
    try:
        return await init_redis_client()
    except (RedisError, OSError) as exc:
        # 无 Redis 时模拟网关退回进程内状态
        logger.error("redis_unavailable", error=str(exc))
        return None


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 仅开发环境自动建表，生产使用 alembic upgrade head
    if settings.DEBUG:
        await create_tables()
        logger.info("database_tables_created")

    redis = await _connect_redis()
    app.state.redis = redis

    checkout = build_checkout_services(
        sqlalchemy_uow_factory(),
        get_payment_gateway(redis=redis),
        notifier=_build_notifier(),
        session_ttl_minutes=settings.checkout.session_ttl_minutes,
        reaper_interval_seconds=settings.checkout.reaper_interval_seconds,
        reaper_batch_size=settings.checkout.reaper_batch_size,
    )
    app.state.checkout = checkout
    logger.info(
        "checkout_initialized",
        provider=checkout.gateway.provider,
        reaper_backend=settings.checkout.reaper_backend,
    )
    if settings.checkout.reaper_backend == "inprocess":
        checkout.reaper.start()

    yield

    await checkout.aclose()
    await shutdown_redis_client()
    await dispose_engine()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="支付优先的结账服务：支付会话、网关回调、订单落地",
)

# 中间件按添加顺序的逆序执行：CORS -> RequestID -> Logging
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)
app.include_router(payments_routes.router, prefix="/api/v1")


@app.get("/", tags=["Root"])
async def root():
    return success_response(data={"name": settings.PROJECT_NAME, "version": settings.VERSION, "docs": "/docs"})


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """存活检查；Redis 不可用不影响结账主流程，只在结果中标记"""
    checkout = getattr(request.app.state, "checkout", None)
    redis: Optional[RedisClient] = getattr(request.app.state, "redis", None)
    if redis is None:
        redis_state = "disabled"
    else:
        redis_state = "ok" if await redis.ping() else "unavailable"
    return success_response(
        data={
            "status": "healthy",
            "gateway": checkout.gateway.provider if checkout is not None else None,
            "redis": redis_state,
        }
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
