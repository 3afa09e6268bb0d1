"""
structlog 配置

structlog 与标准库 logging（uvicorn、celery、sqlalchemy、httpx）共用一条处理链：
开发环境输出彩色控制台，其他环境输出单行 JSON。
"""
import json
import logging
from typing import Any

import structlog
from structlog.contextvars import merge_contextvars
from structlog.stdlib import ProcessorFormatter

from core.config import settings

_QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "httpcore", "celery.redirected")


def _service_fields(logger: Any, method_name: str, event_dict: dict) -> dict:
    event_dict.setdefault("service", settings.PROJECT_NAME)
    event_dict.setdefault("env", settings.ENVIRONMENT)
    return event_dict


def _json_dumps(obj: Any, default=None, **kwargs) -> str:
    return json.dumps(obj, ensure_ascii=False, default=default, **kwargs)


def _pre_chain() -> list:
    chain: list = [
        merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if not settings.DEBUG:
        chain.append(_service_fields)
    return chain


def configure_logging() -> None:
    pre_chain = _pre_chain()
    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    renderer = (
        structlog.dev.ConsoleRenderer(colors=True)
        if settings.DEBUG
        else structlog.processors.JSONRenderer(serializer=_json_dumps)
    )
    handler = logging.StreamHandler()
    handler.setFormatter(
        ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


configure_logging()
