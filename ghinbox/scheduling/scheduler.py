"""APScheduler wrapper for periodic inbox refresh.

Provides:
- Async-compatible scheduler that runs inside the session's event loop
- Interval jobs (periodic refresh) and one-shot delayed jobs (grace logout)
- Job management (add, remove, list)
- Integration with Prometheus metrics

Usage:
    scheduler = RefreshScheduler()
    scheduler.add_interval_job(RefreshJob(session), job_id="inbox_refresh", seconds=60)
    scheduler.start()
    ...
    scheduler.shutdown()
"""

import asyncio
import inspect
import signal
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import structlog
from apscheduler.events import (
    EVENT_JOB_ERROR,
    EVENT_JOB_EXECUTED,
    EVENT_JOB_MISSED,
    JobExecutionEvent,
)
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ghinbox.observability.metrics import SCHEDULER_JOBS

logger = structlog.get_logger()


def _job_callable(func: Callable) -> Callable:
    """APScheduler only awaits coroutine functions; unwrap async callable objects."""
    if not inspect.iscoroutinefunction(func):
        call = getattr(func, "__call__", None)
        if call is not None and inspect.iscoroutinefunction(call):
            return call
    return func


class RefreshScheduler:
    """Async scheduler for inbox jobs.

    Wraps APScheduler's AsyncIOScheduler. Jobs never overlap with
    themselves and missed runs are coalesced into one.
    """

    def __init__(
        self,
        timezone: str = "UTC",
        max_instances: int = 1,
        coalesce: bool = True,
        misfire_grace_time: int = 30,
    ):
        self.scheduler = AsyncIOScheduler(
            timezone=timezone,
            job_defaults={
                "max_instances": max_instances,
                "coalesce": coalesce,
                "misfire_grace_time": misfire_grace_time,
            },
        )

        self._running = False
        self._shutdown_event: Optional[asyncio.Event] = None
        self._jobs: Dict[str, Any] = {}

        self.scheduler.add_listener(self._on_job_executed, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)
        self.scheduler.add_listener(self._on_job_missed, EVENT_JOB_MISSED)

    def add_interval_job(
        self,
        func: Callable,
        job_id: str,
        seconds: float,
        run_immediately: bool = False,
    ) -> str:
        """Run ``func`` every ``seconds``.

        Args:
            func: Async callable to execute
            job_id: Unique job identifier (replaces an existing job)
            seconds: Interval between runs
            run_immediately: Also run once as soon as the scheduler starts

        Returns:
            Job ID
        """
        trigger = IntervalTrigger(seconds=seconds)
        kwargs: Dict[str, Any] = {}
        if run_immediately:
            kwargs["next_run_time"] = datetime.now(timezone.utc)

        job = self.scheduler.add_job(
            _job_callable(func),
            trigger=trigger,
            id=job_id,
            name=job_id,
            replace_existing=True,
            **kwargs,
        )
        self._jobs[job_id] = job

        logger.info("job_added", job_id=job_id, trigger="interval", seconds=seconds)
        self._update_metrics()
        return job_id

    def add_one_shot_job(
        self,
        func: Callable,
        job_id: str,
        delay_seconds: float,
    ) -> str:
        """Run ``func`` once after ``delay_seconds``."""
        run_date = datetime.now(timezone.utc) + timedelta(seconds=delay_seconds)
        job = self.scheduler.add_job(
            _job_callable(func),
            trigger=DateTrigger(run_date=run_date),
            id=job_id,
            name=job_id,
            replace_existing=True,
        )
        self._jobs[job_id] = job

        logger.info("job_added", job_id=job_id, trigger="date", delay=delay_seconds)
        self._update_metrics()
        return job_id

    def has_job(self, job_id: str) -> bool:
        return self.scheduler.get_job(job_id) is not None

    def remove_job(self, job_id: str) -> bool:
        """Remove a job.

        Returns:
            True if job was removed, False if not found
        """
        self._jobs.pop(job_id, None)
        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            return False
        logger.info("job_removed", job_id=job_id)
        self._update_metrics()
        return True

    def get_jobs(self) -> List[Dict[str, Any]]:
        """List scheduled jobs with their next run time."""
        jobs = []
        for job in self.scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            jobs.append(
                {
                    "id": job.id,
                    "name": job.name,
                    "next_run_time": str(next_run) if next_run else None,
                    "pending": getattr(job, "pending", False),
                }
            )
        return jobs

    def start(self) -> None:
        """Start executing jobs. Must be called from a running event loop."""
        if self._running:
            logger.warning("scheduler_already_running")
            return

        self._shutdown_event = asyncio.Event()
        self.scheduler.start()
        self._running = True
        logger.info("scheduler_started", jobs=len(self._jobs))
        self._update_metrics()

    async def wait_closed(self, handle_signals: bool = True) -> None:
        """Block until shutdown() is called or SIGINT/SIGTERM arrives."""
        if not self._running or self._shutdown_event is None:
            return

        if handle_signals:  # pragma: no cover (signal delivery)
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, self._signal_handler)

        await self._shutdown_event.wait()

    def shutdown(self, wait: bool = False) -> None:
        """Stop the scheduler and drop every job."""
        self.scheduler.remove_all_jobs()
        self._jobs.clear()
        if not self._running:
            return

        self.scheduler.shutdown(wait=wait)
        self._running = False
        if self._shutdown_event is not None:
            self._shutdown_event.set()

        self._update_metrics()
        logger.info("scheduler_stopped")

    def _signal_handler(self) -> None:  # pragma: no cover
        logger.info("shutdown_signal_received")
        self.shutdown()

    def _on_job_executed(self, event: JobExecutionEvent) -> None:
        logger.debug(
            "job_executed",
            job_id=event.job_id,
            scheduled_run_time=str(event.scheduled_run_time),
        )
        self._update_metrics()

    def _on_job_error(self, event: JobExecutionEvent) -> None:
        logger.error(
            "job_failed",
            job_id=event.job_id,
            exception=str(event.exception),
            traceback=event.traceback,
        )
        self._update_metrics()

    def _on_job_missed(self, event: JobExecutionEvent) -> None:
        logger.warning(
            "job_missed",
            job_id=event.job_id,
            scheduled_run_time=str(event.scheduled_run_time),
        )
        self._update_metrics()

    def _update_metrics(self) -> None:
        jobs = self.scheduler.get_jobs()
        pending = sum(1 for j in jobs if getattr(j, "pending", False))
        SCHEDULER_JOBS.labels(status="pending").set(pending)
        SCHEDULER_JOBS.labels(status="scheduled").set(len(jobs) - pending)

    @property
    def is_running(self) -> bool:
        return self._running
