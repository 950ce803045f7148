"""Scheduling for periodic inbox refresh.

Provides:
- APScheduler wrapper running inside the session's event loop
- RefreshJob, a correlation-scoped refresh cycle

Usage:
    from ghinbox.scheduling import RefreshScheduler, RefreshJob

    scheduler = RefreshScheduler()
    scheduler.add_interval_job(RefreshJob(session), job_id="inbox_refresh", seconds=60)
    scheduler.start()
"""

from ghinbox.scheduling.scheduler import RefreshScheduler
from ghinbox.scheduling.jobs import BaseJob, RefreshJob

__all__ = [
    "RefreshScheduler",
    "BaseJob",
    "RefreshJob",
]
