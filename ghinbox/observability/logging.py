"""Structured logging with correlation ID propagation.

Configures structlog for the inbox:
- Automatic correlation ID injection into all log entries
- JSON or console rendering
- Optional fan-out to a DiagnosticStream

Usage:
    from ghinbox.observability.logging import get_logger, configure_logging

    configure_logging(level="INFO")

    logger = get_logger("classification")
    logger.info("groups_classified", count=12)

    # Output includes correlation_id automatically:
    # {"event": "groups_classified", "count": 12,
    #  "correlation_id": "refresh-...", "component": "classification", ...}
"""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.typing import EventDict, WrappedLogger

from ghinbox.observability.context import get_correlation_id
from ghinbox.observability.diagnostics import DiagnosticStream


def add_correlation_id_processor(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that adds correlation_id to log entries.

    If no correlation ID is set, uses "none".
    """
    corr_id = get_correlation_id()
    event_dict["correlation_id"] = corr_id if corr_id else "none"
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    add_timestamp: bool = True,
    diagnostics: Optional[DiagnosticStream] = None,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON. If False, use console format.
        add_timestamp: If True, add ISO timestamp to each log entry.
        diagnostics: Optional stream that receives every emitted event.

    Example:
        # Production (JSON for log aggregation)
        configure_logging(level="INFO", json_output=True)

        # Development with a debug panel attached
        configure_logging(level="DEBUG", json_output=False, diagnostics=stream)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        add_correlation_id_processor,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if add_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))

    if diagnostics is not None:
        processors.append(diagnostics)

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_logger(
    component: Optional[str] = None,
    **initial_context: Any,
) -> Any:
    """Get a structured logger with optional component context.

    Args:
        component: Optional component/service name to include in logs
        **initial_context: Additional context to bind to all log entries

    Returns:
        A bound structlog logger
    """
    logger = structlog.get_logger()

    if component:
        logger = logger.bind(component=component)

    if initial_context:
        logger = logger.bind(**initial_context)

    return logger


def bind_context(**context: Any) -> None:
    """Bind context to all subsequent log entries in the current context.

    Example:
        bind_context(login="octocat")
        logger.info("refresh_started")  # Includes login
    """
    structlog.contextvars.bind_contextvars(**context)


def clear_context() -> None:
    """Clear all bound context from structlog contextvars."""
    structlog.contextvars.clear_contextvars()
