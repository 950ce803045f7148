"""
Paged ingestion of notification events.

Drives the remote listing page by page, accumulating events up to the
configured page and event ceilings. Supports three modes:
1. fetch_initial: the first ``initial_pages`` pages
2. load_more: exactly one further page
3. refetch_loaded: every page loaded so far (periodic refresh)

Events are deduplicated by id; the first occurrence wins.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List

import structlog

from ghinbox.models.config import GitHubSettings
from ghinbox.models.events import RawEvent
from ghinbox.observability.metrics import LOADED_PAGES
from ghinbox.services.providers.base import NotificationSource

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IngestionController:
    """Accumulates raw events across pages for one session."""

    def __init__(
        self,
        source: NotificationSource,
        settings: GitHubSettings,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.source = source
        self.settings = settings
        self._now = now

        self._events: Dict[str, RawEvent] = {}
        self._loaded_pages = 0
        self._exhausted = False

    @property
    def events(self) -> List[RawEvent]:
        """Accumulated events in arrival order."""
        return list(self._events.values())

    @property
    def loaded_pages(self) -> int:
        return self._loaded_pages

    @property
    def has_more(self) -> bool:
        """Whether another page may exist and the ceilings allow fetching it."""
        return (
            not self._exhausted
            and self._loaded_pages < self.settings.max_pages
            and len(self._events) < self.settings.max_events
        )

    def _since(self) -> datetime:
        return self._now() - timedelta(days=self.settings.since_days)

    async def _fetch_pages(
        self, first_page: int, last_page: int
    ) -> tuple[Dict[str, RawEvent], int, bool]:
        """
        Fetch pages ``first_page``..``last_page`` inclusive.

        Returns:
            (events by id, last page fetched, whether the listing ended)
        """
        collected: Dict[str, RawEvent] = {}
        since = self._since()
        page = first_page - 1
        exhausted = False

        for page in range(first_page, last_page + 1):
            result = await self.source.list_events(
                page=page, page_size=self.settings.page_size, since=since
            )
            for event in result.events:
                collected.setdefault(event.id, event)

            logger.debug(
                "notification_page_fetched",
                page=page,
                received=result.received,
                kept=len(result.events),
            )

            if result.is_last(self.settings.page_size):
                exhausted = True
                break
            if len(collected) >= self.settings.max_events:
                break

        return collected, page, exhausted

    def _apply(
        self, collected: Dict[str, RawEvent], pages: int, exhausted: bool
    ) -> None:
        events = list(collected.values())[: self.settings.max_events]
        self._events = {event.id: event for event in events}
        self._loaded_pages = pages
        self._exhausted = exhausted
        LOADED_PAGES.set(pages)

    async def fetch_initial(self) -> List[RawEvent]:
        """Replace the accumulated events with the first pages."""
        last = min(self.settings.initial_pages, self.settings.max_pages)
        collected, page, exhausted = await self._fetch_pages(1, last)
        self._apply(collected, page, exhausted)

        logger.info(
            "notifications_fetched",
            mode="initial",
            pages=self._loaded_pages,
            events=len(self._events),
        )
        return self.events

    async def load_more(self) -> List[RawEvent]:
        """
        Append the next page.

        Returns:
            Events that were not already loaded
        """
        if not self.has_more:
            logger.debug("load_more_skipped", pages=self._loaded_pages)
            return []

        next_page = self._loaded_pages + 1
        collected, _, exhausted = await self._fetch_pages(next_page, next_page)

        new_events = [e for e in collected.values() if e.id not in self._events]
        merged = dict(self._events)
        for event in new_events:
            merged[event.id] = event
        self._apply(merged, next_page, exhausted)

        logger.info(
            "notifications_fetched",
            mode="load_more",
            page=next_page,
            new_events=len(new_events),
            events=len(self._events),
        )
        return new_events

    async def refetch_loaded(self) -> List[RawEvent]:
        """Re-fetch every loaded page (at least the initial ones)."""
        last = max(self._loaded_pages, self.settings.initial_pages)
        last = min(last, self.settings.max_pages)
        collected, page, exhausted = await self._fetch_pages(1, last)
        self._apply(collected, page, exhausted)

        logger.info(
            "notifications_fetched",
            mode="refresh",
            pages=self._loaded_pages,
            events=len(self._events),
        )
        return self.events

    def reset(self) -> None:
        self._events = {}
        self._loaded_pages = 0
        self._exhausted = False
        LOADED_PAGES.set(0)
