"""
Structured logging for taskguard.

taskguard never prints: busy rejections, callback failures and scheduling
failures all go through structlog loggers obtained from ``get_logger``.
Applications that want formatted output call ``configure_logging`` once at
startup; libraries embedding taskguard can leave structlog's defaults or
their own configuration in place.

Architecture:
    ::

        configure_logging(level=None, json_format=None, service="taskguard")
             │   (None falls back to TASKGUARD_LOG_LEVEL / TASKGUARD_LOG_JSON)
             ▼
        structlog processor chain:
          1. TimeStamper(iso)
          2. merge_contextvars      (task=..., bound by LogContext)
          3. add_log_level / add_logger_name
          4. add_service_metadata
          5. JSONRenderer (non-tty)  or  ConsoleRenderer (tty)

Examples:
    >>> from taskguard.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", service="maintenance-worker")
    >>> logger = get_logger(__name__)
    >>> logger.info("cleanup_finished", removed=12)

Tags:
    logging, structlog, observability, taskguard

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from taskguard.settings import get_settings

_SERVICE_NAME = "taskguard"


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service", _SERVICE_NAME)
    return event_dict


def _resolve_level(level: str) -> int:
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def configure_logging(
    level: str | None = None,
    json_format: bool | None = None,
    service: str = "taskguard",
    add_timestamp: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR); defaults to
            ``TASKGUARD_LOG_LEVEL``
        json_format: True for JSON, False for console; defaults to
            ``TASKGUARD_LOG_JSON``, then auto (JSON if not tty)
        service: Service name to include in logs
        add_timestamp: Include ISO timestamp in logs

    Example:
        # Production (JSON for log aggregation)
        configure_logging(level="INFO", json_format=True, service="cleanup-worker")

        # Development (auto-detect: colored console if tty)
        configure_logging(level="DEBUG")

        # From TASKGUARD_LOG_LEVEL / TASKGUARD_LOG_JSON
        configure_logging()
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service

    settings = get_settings()
    if level is None:
        level = settings.log_level
    if json_format is None:
        json_format = settings.log_json

    numeric_level = _resolve_level(level)

    if json_format is None:
        json_format = not sys.stdout.isatty()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]

    if add_timestamp:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger.

    Args:
        name: Logger name (usually __name__)
    """
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context to include in all subsequent logs."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound context."""
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Context manager for scoped logging context.

    Example:
        async with LogContext(task="sync"):
            logger.info("run_started")
        # Context cleared here
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs
        self._tokens: dict[str, Any] = {}

    def __enter__(self) -> LogContext:
        self._tokens = structlog.contextvars.bind_contextvars(**self._context)
        return self

    def __exit__(self, *args) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)

    async def __aenter__(self) -> LogContext:
        return self.__enter__()

    async def __aexit__(self, *args) -> None:
        self.__exit__(*args)


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
