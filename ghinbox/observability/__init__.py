"""Observability for the notification inbox.

Provides:
- Correlation ID context management per refresh cycle
- Structured logging with context propagation
- A leveled diagnostic event stream for in-process subscribers
- Prometheus metrics for monitoring

Usage:
    from ghinbox.observability import (
        configure_logging,
        DiagnosticStream,
        get_logger,
        REFRESH_CYCLES,
    )

    stream = DiagnosticStream()
    configure_logging(level="DEBUG", diagnostics=stream)
    stream.subscribe(print, min_level="warning")
"""

from ghinbox.observability.context import (
    set_correlation_id,
    get_correlation_id,
    clear_correlation_id,
    correlation_id_context,
)
from ghinbox.observability.diagnostics import DiagnosticEvent, DiagnosticStream
from ghinbox.observability.logging import (
    get_logger,
    configure_logging,
    add_correlation_id_processor,
    bind_context,
    clear_context,
)
from ghinbox.observability.metrics import (
    REFRESH_CYCLES,
    REMOTE_REQUESTS,
    CACHE_OPERATIONS,
    ENRICHMENT_RESULTS,
    ALERTS_EMITTED,
    VISIBLE_GROUPS,
    LOADED_PAGES,
    SCHEDULER_JOBS,
    REFRESH_DURATION,
    get_metrics_text,
)

__all__ = [
    # Context
    "set_correlation_id",
    "get_correlation_id",
    "clear_correlation_id",
    "correlation_id_context",
    # Diagnostics
    "DiagnosticEvent",
    "DiagnosticStream",
    # Logging
    "get_logger",
    "configure_logging",
    "add_correlation_id_processor",
    "bind_context",
    "clear_context",
    # Metrics
    "REFRESH_CYCLES",
    "REMOTE_REQUESTS",
    "CACHE_OPERATIONS",
    "ENRICHMENT_RESULTS",
    "ALERTS_EMITTED",
    "VISIBLE_GROUPS",
    "LOADED_PAGES",
    "SCHEDULER_JOBS",
    "REFRESH_DURATION",
    "get_metrics_text",
]
