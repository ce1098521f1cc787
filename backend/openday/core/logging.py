"""
Structured logging configuration using structlog.

JSON lines in production, coloured console output elsewhere. Both the
application and the operator CLI call `setup_logging`; the request ID bound
by the middleware reaches engine log lines through contextvars.
"""

import logging
import sys
from typing import Optional

import structlog

from openday.core.config import Settings, get_settings

NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite", "asyncio")


def _render_domain_values(logger, method_name, event_dict):
    """Slot keys and other value objects are logged in their string form."""
    for key, value in event_dict.items():
        if key == "exc_info":
            continue
        if isinstance(value, (list, tuple, set, frozenset)):
            event_dict[key] = [_plain(item) for item in value]
        else:
            event_dict[key] = _plain(value)
    return event_dict


def _plain(value):
    if value is None or isinstance(value, (str, int, float, bool, dict)):
        return value
    return str(value)


def setup_logging(settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()
    production = settings.ENVIRONMENT == "production"

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=production),
        structlog.processors.StackInfoRenderer(),
        _render_domain_values,
    ]
    if production:
        shared_processors.append(structlog.processors.format_exc_info)

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if production
        else structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    # Replace rather than append: the CLI and tests may call this repeatedly
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
