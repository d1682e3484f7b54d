"""
Structured logging for the watch service.

Configuration Flow:
    ::

        configure_logging(level="info", json_format=None, service="watch-spine")
            │
            ▼
        structlog processor chain:
          1. TimeStamper (iso)
          2. merge_contextvars        (tick_id, subject_id, ...)
          3. add_log_level
          4. add_service_metadata
          5. ecs_compatible           (JSON mode only)
          6. JSONRenderer | ConsoleRenderer

Verbosity:
    The watch service speaks in a small set of verbosity names taken from
    ``WATCH_LOG_LEVEL``: ``silent``, ``error``, ``warn``, ``info``, ``debug``.
    Standard names (``WARNING``, ``CRITICAL``, ...) are accepted too.

Examples:
    >>> from watch_spine.core.logging import configure_logging, get_logger
    >>> configure_logging(level="info", json_format=True)
    >>> logger = get_logger(__name__)
    >>> logger.info("tick_started", targets=3)
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Above CRITICAL: nothing is emitted.
SILENT = logging.CRITICAL + 10

_LEVELS: dict[str, int] = {
    "silent": SILENT,
    "off": SILENT,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "critical": logging.CRITICAL,
}

_SERVICE_NAME = "watch-spine"


def resolve_level(level: str | int) -> int:
    """Translate a verbosity name into a numeric logging level.

    Unknown names fall back to INFO.
    """
    if isinstance(level, int):
        return level
    return _LEVELS.get(level.strip().lower(), logging.INFO)


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service.name", _SERVICE_NAME)
    return event_dict


def _ecs_compatible(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Make field names Elasticsearch/ECS compatible."""
    if "timestamp" in event_dict:
        event_dict["@timestamp"] = event_dict.pop("timestamp")
    if "level" in event_dict:
        event_dict["log.level"] = event_dict.pop("level")
    return event_dict


def configure_logging(
    level: str | int = "info",
    json_format: bool | None = None,
    service: str = "watch-spine",
) -> None:
    """Configure structured logging for the process.

    Args:
        level: Verbosity name (silent, error, warn, info, debug) or a
            numeric logging level
        json_format: True for JSON, False for console, None for auto
            (JSON when stdout is not a tty)
        service: Service name included in every record
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service

    numeric = resolve_level(level)

    if json_format is None:
        json_format = not sys.stdout.isatty()

    processors: list[Processor] = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]

    renderer: Processor
    if json_format:
        processors.append(structlog.processors.format_exc_info)
        processors.append(_ecs_compatible)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    silent = numeric >= SILENT
    structlog.configure(
        processors=[*processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.CRITICAL if silent else numeric
        ),
        context_class=dict,
        logger_factory=(
            structlog.ReturnLoggerFactory() if silent else structlog.PrintLoggerFactory()
        ),
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=min(numeric, logging.CRITICAL + 1),
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger (usually ``get_logger(__name__)``)."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context to include in all subsequent logs."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


class LogContext:
    """Context manager for scoped logging context.

    Example:
        with LogContext(tick_id="abc123"):
            logger.info("tick_started")
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args: Any) -> None:
        unbind_context(*self._context.keys())


__all__ = [
    "SILENT",
    "configure_logging",
    "get_logger",
    "resolve_level",
    "bind_context",
    "unbind_context",
    "LogContext",
]
