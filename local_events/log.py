import logging
from contextlib import AbstractContextManager

import structlog

from local_events.config import settings

_LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer()
        if settings.log_level.upper() == "DEBUG"
        else structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        _LOG_LEVELS.get(settings.log_level.upper(), logging.INFO)
    ),
)

structlog.contextvars.bind_contextvars(city=settings.city_name)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def source_context(source_id: str, source_name: str) -> AbstractContextManager:
    """Tag every log line inside the block with the source being collected."""
    return structlog.contextvars.bound_contextvars(source_id=source_id, source_name=source_name)
