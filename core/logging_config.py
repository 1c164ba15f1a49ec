"""
Structlog 日志配置模块

structlog and stdlib logging share one processor chain, so SQLAlchemy, Celery
and Stripe records are rendered the same way as application events. Events
are snake_case names with keyword context (order_id, payment_id, ...).
"""
import logging
import json
from decimal import Decimal
import structlog
from structlog.processors import TimeStamper, add_log_level, JSONRenderer
from structlog.dev import ConsoleRenderer
from structlog.contextvars import merge_contextvars
from structlog.stdlib import ProcessorFormatter
from typing import Any, List, Optional

from core.config import settings


# third-party loggers that are chatty at DEBUG
_QUIET_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "stripe", "celery.utils.functional")


def _json_default(obj: Any) -> Any:
    # money stays exact in JSON logs
    if isinstance(obj, Decimal):
        return str(obj)
    return repr(obj)


def get_renderer() -> Any:
    """Console in DEBUG, JSON otherwise."""
    if settings.DEBUG:
        return ConsoleRenderer(colors=True)

    def _dumps(obj, default=None, **kwargs):
        return json.dumps(obj, ensure_ascii=False, default=_json_default, **kwargs)
    return JSONRenderer(serializer=_dumps)


def _resolve_level(level: Optional[int]) -> int:
    if level is not None:
        return level
    if settings.LOG_LEVEL:
        return logging.getLevelName(settings.LOG_LEVEL.upper())
    return logging.DEBUG if settings.DEBUG else logging.INFO


def configure_logging(level: Optional[int] = None) -> None:
    pre_chain: List[Any] = [
        merge_contextvars,
        structlog.stdlib.add_logger_name,
        add_log_level,
        TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[ProcessorFormatter.remove_processors_meta, get_renderer()],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(_resolve_level(level))
    # SQL echo is controlled by DATABASE__ECHO
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


configure_logging()
