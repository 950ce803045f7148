"""Inbox session: the single refresh actor for one login.

Owns the stores, caches, remote source and scheduler for the lifetime of
a login and runs refresh cycles one at a time:

    ingestion -> classification -> dismissal filter -> alerts -> view

Usage:
    session = InboxSession(config, GitHubClient(config.github), storage,
                           alert_sink=show_alert)
    await session.start()          # first cycle, no alerts, schedules refresh
    await session.load_more()      # next page, no alerts
    session.dismiss(group_key)
    await session.logout()         # cancels timers, discards in-flight work
"""

import asyncio
import inspect
import time
import uuid
from typing import Any, Callable, List, Optional, Set

from ghinbox.models.config import AppConfig
from ghinbox.models.events import Identity, Team
from ghinbox.models.inbox import AlertRequest, InboxView, NotificationGroup
from ghinbox.observability.context import correlation_id_context, get_correlation_id
from ghinbox.observability.logging import bind_context, clear_context, get_logger
from ghinbox.observability.metrics import (
    REFRESH_CYCLES,
    REFRESH_DURATION,
    VISIBLE_GROUPS,
)
from ghinbox.orchestration.result import (
    STATUS_DISCARDED,
    STATUS_FAILED,
    STATUS_INACTIVE,
    STATUS_UNAUTHORIZED,
    RefreshResult,
)
from ghinbox.scheduling.jobs import RefreshJob
from ghinbox.scheduling.scheduler import RefreshScheduler
from ghinbox.services.alert_service import AlertDispatcher, filter_dismissed
from ghinbox.services.classification_service import ClassificationPipeline
from ghinbox.services.dismissal_service import DismissalStore, VisitedStore
from ghinbox.services.inbox_view import build_inbox_view
from ghinbox.services.ingestion_service import IngestionController
from ghinbox.services.providers.base import NotificationSource
from ghinbox.services.state_cache import StateCache
from ghinbox.services.storage import StateStorage
from ghinbox.services.team_cache import TeamCache, UserTeamsCache
from ghinbox.utils.exceptions import UnauthorizedError

logger = get_logger("session")

REFRESH_JOB_ID = "inbox_refresh"
GRACE_LOGOUT_JOB_ID = "inbox_unauthorized_logout"
UNAUTHORIZED_MESSAGE = "Authentication expired. Please login again."

MODE_INITIAL = "initial"
MODE_REFRESH = "refresh"
MODE_LOAD_MORE = "load_more"

AlertSink = Callable[[AlertRequest], Any]


class InboxSession:
    """One login's inbox state and refresh actor."""

    def __init__(
        self,
        config: AppConfig,
        source: NotificationSource,
        storage: StateStorage,
        alert_sink: Optional[AlertSink] = None,
        scheduler: Optional[RefreshScheduler] = None,
        on_logout: Optional[Callable[[], Any]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.source = source
        self.storage = storage
        self.alert_sink = alert_sink
        self.on_logout = on_logout
        self.scheduler = scheduler or RefreshScheduler()

        cache = config.cache
        self.state_cache = StateCache(storage, cache.ttl_state_seconds, clock)
        self.team_cache = TeamCache(
            storage, cache.ttl_team_seconds, cache.team_cache_version, clock
        )
        self.user_teams_cache = UserTeamsCache(
            storage, cache.ttl_user_teams_seconds, clock
        )
        self.dismissals = DismissalStore(storage)
        self.visited = VisitedStore(storage, cache.ttl_visited_seconds, clock)

        self.ingestion = IngestionController(source, config.github)
        self.pipeline = ClassificationPipeline(
            source, self.state_cache, self.team_cache, config.concurrency
        )
        self.alerts = AlertDispatcher()

        self.identity: Optional[Identity] = None
        self.user_teams: Optional[List[Team]] = None
        self.groups: List[NotificationGroup] = []
        self.view = InboxView()
        self.error: Optional[str] = None
        self.active = False

        self._generation = 0
        self._lock = asyncio.Lock()
        self._seen_ids: Set[str] = set()
        self._primed = False
        self._grace_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, schedule: bool = True) -> RefreshResult:
        """
        Resolve identity and teams, run the first cycle, schedule refreshes.

        The first cycle never alerts; it marks every prominent group so
        the next cycle alerts only on genuinely new events.
        """
        self.active = True
        generation = self._generation

        try:
            identity = await self.source.get_current_user()
            user_teams = await self._load_user_teams(identity)
        except UnauthorizedError:
            self._handle_unauthorized()
            REFRESH_CYCLES.labels(mode=MODE_INITIAL, status=STATUS_UNAUTHORIZED).inc()
            return RefreshResult(
                mode=MODE_INITIAL, status=STATUS_UNAUTHORIZED, error=self.error
            )

        if generation != self._generation:
            return RefreshResult(mode=MODE_INITIAL, status=STATUS_DISCARDED)

        self.identity = identity
        self.user_teams = user_teams
        bind_context(login=identity.login)
        self.team_cache.purge_prior_versions()

        logger.info(
            "session_started",
            login=identity.login,
            teams=len(user_teams) if user_teams is not None else None,
        )

        result = await self._run_cycle(MODE_INITIAL)

        if schedule and self.active and result.status != STATUS_UNAUTHORIZED:
            self.scheduler.add_interval_job(
                RefreshJob(self),
                job_id=REFRESH_JOB_ID,
                seconds=self.config.refresh.interval_seconds,
            )
            if not self.scheduler.is_running:
                self.scheduler.start()

        return result

    async def _load_user_teams(self, identity: Identity) -> Optional[List[Team]]:
        cached = self.user_teams_cache.get(identity.login)
        if cached is not None:
            return cached

        try:
            teams = await self.source.get_user_teams()
        except UnauthorizedError:
            raise
        except Exception as e:
            # Unknown teams only cost the per-team buckets
            logger.warning("user_teams_fetch_failed", error=str(e))
            return None

        self.user_teams_cache.set(identity.login, teams)
        return teams

    async def logout(self) -> None:
        """End the session: cancel timers, discard in-flight results, close the source."""
        if not self.active and self.identity is None:
            return

        self.active = False
        self._generation += 1

        self.scheduler.shutdown()
        current = asyncio.current_task()
        if self._grace_task is not None and self._grace_task is not current:
            self._grace_task.cancel()
        self._grace_task = None

        await self.source.close()

        self.identity = None
        self.user_teams = None
        self.groups = []
        self.view = InboxView()
        self.alerts.reset()
        self._seen_ids.clear()
        self._primed = False
        self.ingestion.reset()
        VISIBLE_GROUPS.set(0)

        logger.info("session_logged_out")
        clear_context()

        if self.on_logout is not None:
            outcome = self.on_logout()
            if inspect.isawaitable(outcome):
                await outcome

    def _handle_unauthorized(self) -> None:
        """Show the error now, log out after the grace period."""
        self.error = UNAUTHORIZED_MESSAGE
        logger.warning(
            "session_unauthorized",
            grace_seconds=self.config.refresh.unauthorized_grace_seconds,
        )

        grace = self.config.refresh.unauthorized_grace_seconds
        if self.scheduler.is_running:
            self.scheduler.add_one_shot_job(
                self._spawn_logout, job_id=GRACE_LOGOUT_JOB_ID, delay_seconds=grace
            )
        elif self._grace_task is None:
            self._grace_task = asyncio.get_running_loop().create_task(
                self._logout_after(grace)
            )

    async def _spawn_logout(self) -> None:
        # Detached so that stopping the scheduler cannot cancel the logout
        self._grace_task = asyncio.get_running_loop().create_task(self.logout())

    async def _logout_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        await self.logout()

    # ------------------------------------------------------------------
    # Refresh cycles
    # ------------------------------------------------------------------

    async def refresh(self) -> RefreshResult:
        """Re-process every loaded page. The only cycle that raises alerts."""
        return await self._run_cycle(MODE_REFRESH)

    async def load_more(self) -> RefreshResult:
        """Append the next page without raising alerts."""
        return await self._run_cycle(MODE_LOAD_MORE)

    @property
    def has_more(self) -> bool:
        return self.ingestion.has_more

    async def _run_cycle(self, mode: str) -> RefreshResult:
        if not self.active:
            return RefreshResult(mode=mode, status=STATUS_INACTIVE)

        corr_id = get_correlation_id() or f"{mode}-{uuid.uuid4().hex[:8]}"
        with correlation_id_context(corr_id):
            async with self._lock:
                return await self._locked_cycle(mode)

    async def _locked_cycle(self, mode: str) -> RefreshResult:
        generation = self._generation
        started = time.monotonic()

        if not self.active:
            return RefreshResult(mode=mode, status=STATUS_INACTIVE)

        try:
            if mode == MODE_INITIAL:
                events = await self.ingestion.fetch_initial()
            elif mode == MODE_LOAD_MORE:
                await self.ingestion.load_more()
                events = self.ingestion.events
            else:
                events = await self.ingestion.refetch_loaded()

            groups = await self.pipeline.classify(
                events, self.identity, self.user_teams
            )
        except UnauthorizedError:
            if generation != self._generation:
                return self._discarded(mode)
            self._handle_unauthorized()
            REFRESH_CYCLES.labels(mode=mode, status=STATUS_UNAUTHORIZED).inc()
            return RefreshResult(mode=mode, status=STATUS_UNAUTHORIZED, error=self.error)
        except Exception as e:
            if generation != self._generation:
                return self._discarded(mode)
            self.error = str(e) or "Failed to fetch notifications"
            logger.error("refresh_failed", mode=mode, error=str(e), exc_info=True)
            REFRESH_CYCLES.labels(mode=mode, status=STATUS_FAILED).inc()
            return RefreshResult(mode=mode, status=STATUS_FAILED, error=self.error)

        if generation != self._generation:
            return self._discarded(mode)

        visible = filter_dismissed(groups, self.dismissals)

        if mode == MODE_REFRESH and self._primed:
            alerts = self.alerts.dispatch(visible, self._seen_ids)
        else:
            self.alerts.prime(visible)
            alerts = []

        self._primed = True
        self._seen_ids.update(event.id for event in events)

        self.groups = visible
        self.view = build_inbox_view(visible)
        self.error = None

        await self._deliver_alerts(alerts)

        duration = time.monotonic() - started
        REFRESH_CYCLES.labels(mode=mode, status="success").inc()
        REFRESH_DURATION.labels(mode=mode).observe(duration)
        VISIBLE_GROUPS.set(len(visible))

        result = RefreshResult(
            mode=mode,
            events=len(events),
            groups=len(visible),
            dismissed_hidden=len(groups) - len(visible),
            pages=self.ingestion.loaded_pages,
            alerts=alerts,
            duration_seconds=duration,
        )
        logger.info("refresh_completed", **result.to_dict())
        return result

    def _discarded(self, mode: str) -> RefreshResult:
        logger.info("refresh_result_discarded", mode=mode)
        REFRESH_CYCLES.labels(mode=mode, status=STATUS_DISCARDED).inc()
        return RefreshResult(mode=mode, status=STATUS_DISCARDED)

    async def _deliver_alerts(self, alerts: List[AlertRequest]) -> None:
        if self.alert_sink is None:
            return
        for alert in alerts:
            try:
                outcome = self.alert_sink(alert)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.warning(
                    "alert_delivery_failed", group_key=alert.group_key, error=str(e)
                )

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def _remove_group(self, group_key: str) -> None:
        self.groups = [g for g in self.groups if g.key != group_key]
        self.view = build_inbox_view(self.groups)
        VISIBLE_GROUPS.set(len(self.groups))

    def dismiss(self, group_key: str) -> bool:
        """Dismiss a group for good and drop it from the current view."""
        added = self.dismissals.dismiss(group_key)
        self._remove_group(group_key)
        return added

    def mark_visited(self, group_key: str) -> None:
        self.visited.mark_visited(group_key)

    def is_visited(self, group_key: str) -> bool:
        return self.visited.is_visited(group_key)

    def find_group(self, group_key: str) -> Optional[NotificationGroup]:
        for group in self.groups:
            if group.key == group_key:
                return group
        return None

    async def mark_read(self, group_key: str) -> int:
        """
        Mark every event of a group read on the remote source.

        Returns:
            Number of events acknowledged
        """
        group = self.find_group(group_key)
        if group is None:
            return 0

        acknowledged = 0
        for event_id in group.event_ids:
            try:
                if await self.source.mark_read(event_id):
                    acknowledged += 1
            except UnauthorizedError:
                self._handle_unauthorized()
                return acknowledged
            except Exception as e:
                logger.warning("mark_read_failed", event_id=event_id, error=str(e))

        if acknowledged and not self.config.github.include_read:
            self._remove_group(group_key)
        return acknowledged
