"""Scheduled job definitions for the inbox.

Provides:
- BaseJob: correlation id, timing and run bookkeeping for any job
- RefreshJob: one periodic refresh cycle of an InboxSession

Usage:
    from ghinbox.scheduling.jobs import RefreshJob

    job = RefreshJob(session)
    await job()
"""

import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional

import structlog

from ghinbox.observability.context import correlation_id_context

if TYPE_CHECKING:
    from ghinbox.orchestration.session import InboxSession

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseJob(ABC):
    """Base class for scheduled jobs.

    Provides common functionality:
    - Correlation ID scoped to each run
    - Error logging
    - Execution timing and run counters
    """

    def __init__(self, name: str):
        self.name = name
        self.last_run: Optional[datetime] = None
        self.last_success: Optional[datetime] = None
        self.run_count: int = 0
        self.error_count: int = 0

    async def __call__(self) -> Any:
        """Execute the job with correlation ID and error handling."""
        start = time.monotonic()
        corr_id = f"{self.name}-{_utcnow().strftime('%Y%m%d-%H%M%S')}"

        with correlation_id_context(corr_id):
            logger.debug("job_starting", job_name=self.name)

            try:
                result = await self.run()
            except Exception as e:
                self.last_run = _utcnow()
                self.error_count += 1
                logger.error(
                    "job_failed",
                    job_name=self.name,
                    error=str(e),
                    exc_info=True,
                )
                raise

            self.last_run = _utcnow()
            self.last_success = self.last_run
            self.run_count += 1

            logger.debug(
                "job_completed",
                job_name=self.name,
                duration_seconds=round(time.monotonic() - start, 3),
            )
            return result

    @abstractmethod
    async def run(self) -> Any:
        """Execute the job logic."""
        pass  # pragma: no cover (abstract method)

    def get_status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "last_success": (
                self.last_success.isoformat() if self.last_success else None
            ),
            "run_count": self.run_count,
            "error_count": self.error_count,
        }


class RefreshJob(BaseJob):
    """Periodic full refresh of every loaded page.

    The only path that raises alerts.
    """

    def __init__(self, session: "InboxSession"):
        super().__init__("inbox_refresh")
        self.session = session

    async def run(self) -> Dict[str, Any]:
        result = await self.session.refresh()
        return result.to_dict()
