"""
Structured logging using structlog.

JSON lines in production, colored console output in development. Request
handlers bind ``request_id`` and sync runs bind ``sync_key`` through
contextvars, so every line emitted under them carries the scope.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.types import Processor

from adsync.common.config import get_settings

# Client libraries that log every request/statement at INFO
_CHATTY_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "apscheduler")


def setup_logging() -> None:
    """Configure structlog and the stdlib root logger from settings."""
    settings = get_settings()
    level = logging.getLevelName(settings.logging.level)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ExtraAdder(),
    ]

    if settings.logging.format == "json":
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # uvicorn, sqlalchemy, httpx and apscheduler log through the stdlib
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    if not settings.debug:
        for name in _CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Optional logger name for context.
    """
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger_name=name)
    return logger


class LoggerMixin:
    """Mixin class to add logging capability to any class."""

    @property
    def logger(self) -> structlog.BoundLogger:
        if not hasattr(self, "_logger"):
            self._logger = get_logger(self.__class__.__name__)
        return self._logger


def log_context(**kwargs: Any) -> None:
    """
    Add context variables to all subsequent log messages in the current context.

    Usage:
        log_context(request_id="abc123")
        logger.info("Request completed")  # includes request_id
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_log_context() -> None:
    """Clear all context variables."""
    structlog.contextvars.clear_contextvars()


@contextmanager
def sync_log_context(sync_key: str, **kwargs: Any) -> Iterator[None]:
    """
    Bind ``sync_key`` (and extras) for the duration of one sync scope.

    Previous values are restored on exit, so nested stages inside a full
    sync log their own key and the outer key comes back afterwards.
    """
    with structlog.contextvars.bound_contextvars(sync_key=sync_key, **kwargs):
        yield


# Initialize logging on module import
setup_logging()

# Default logger instance
logger = get_logger("adsync")
