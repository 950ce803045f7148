"""Prometheus metrics definitions for the notification inbox.

Defines counters, gauges, and histograms for monitoring:
- Refresh cycle throughput and latency
- Remote API usage by endpoint
- Cache performance per namespace
- Alert emission

Usage:
    from ghinbox.observability.metrics import (
        REFRESH_CYCLES,
        REMOTE_REQUESTS,
        REFRESH_DURATION,
    )

    REFRESH_CYCLES.labels(mode="refresh", status="success").inc()

    with REFRESH_DURATION.labels(mode="refresh").time():
        await session.refresh()
"""

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    CollectorRegistry,
    generate_latest,
)

# Private registry so tests and multiple sessions do not collide with the default one
REGISTRY = CollectorRegistry(auto_describe=True)

# =============================================================================
# COUNTERS
# =============================================================================

REFRESH_CYCLES = Counter(
    name="ghinbox_refresh_cycles_total",
    documentation="Total refresh cycles",
    labelnames=["mode", "status"],  # initial/refresh/load_more, success/failed/discarded
    registry=REGISTRY,
)

REMOTE_REQUESTS = Counter(
    name="ghinbox_remote_requests_total",
    documentation="Total remote API requests",
    labelnames=["endpoint", "status"],  # user/notifications/subject/..., http status
    registry=REGISTRY,
)

CACHE_OPERATIONS = Counter(
    name="ghinbox_cache_operations_total",
    documentation="Total cache operations",
    labelnames=["cache", "operation"],  # namespace, hit/miss/expired/set
    registry=REGISTRY,
)

ENRICHMENT_RESULTS = Counter(
    name="ghinbox_enrichment_results_total",
    documentation="Remote enrichment outcomes during classification",
    labelnames=["stage", "result"],  # liveness/team, open/deleted/unknown/team/personal/failed/deferred
    registry=REGISTRY,
)

ALERTS_EMITTED = Counter(
    name="ghinbox_alerts_emitted_total",
    documentation="Total alerts emitted",
    labelnames=["kind"],  # own_content, review_request, mention, other
    registry=REGISTRY,
)

# =============================================================================
# GAUGES
# =============================================================================

VISIBLE_GROUPS = Gauge(
    name="ghinbox_visible_groups",
    documentation="Groups emitted by the last refresh cycle",
    registry=REGISTRY,
)

LOADED_PAGES = Gauge(
    name="ghinbox_loaded_pages",
    documentation="Notification pages currently loaded",
    registry=REGISTRY,
)

SCHEDULER_JOBS = Gauge(
    name="ghinbox_scheduler_jobs",
    documentation="Number of scheduled jobs",
    labelnames=["status"],  # pending, scheduled
    registry=REGISTRY,
)

# =============================================================================
# HISTOGRAMS
# =============================================================================

REFRESH_DURATION = Histogram(
    name="ghinbox_refresh_duration_seconds",
    documentation="Refresh cycle duration in seconds",
    labelnames=["mode"],
    buckets=(0.1, 0.25, 0.5, 1, 2, 5, 10, 30, 60, float("inf")),
    registry=REGISTRY,
)


def get_metrics_text() -> bytes:
    """Generate Prometheus metrics in text format.

    Returns:
        UTF-8 encoded metrics in Prometheus exposition format.
    """
    return generate_latest(REGISTRY)
