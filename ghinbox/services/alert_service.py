"""
Alert dispatch and dismissal filtering.

AlertDispatcher decides which prominent groups raise an external alert.
It remembers, for the lifetime of the session, which member events of
each group already alerted, so a group alerts again only when a
genuinely new event joins it.
"""

from typing import Dict, Iterable, List, Optional, Set

import structlog

from ghinbox.models.inbox import AlertRequest, NotificationGroup
from ghinbox.observability.metrics import ALERTS_EMITTED
from ghinbox.services.dismissal_service import DismissalStore
from ghinbox.utils.url import get_subject_url

logger = structlog.get_logger()


def filter_dismissed(
    groups: Iterable[NotificationGroup], dismissals: DismissalStore
) -> List[NotificationGroup]:
    """Drop dismissed groups, preserving order."""
    return [g for g in groups if not dismissals.is_dismissed(g.key)]


def alert_kind(group: NotificationGroup) -> str:
    if group.is_own_content:
        return "own_content"
    if group.has_review_request:
        return "review_request"
    if group.has_mention:
        return "mention"
    return "other"


def build_alert(group: NotificationGroup) -> AlertRequest:
    """Build the alert for a group; the title prefix follows flag precedence."""
    title = group.subject.title
    kind = alert_kind(group)

    if kind == "own_content":
        title = f"[Your {group.subject.type}] {title}"
    elif kind == "review_request":
        title = f"[Review Request] {title}"
    elif kind == "mention":
        title = f"[Mention] {title}"

    return AlertRequest(
        group_key=group.key,
        title=title,
        body=group.repository.full_name,
        click_url=get_subject_url(group.subject),
        tag=group.key,
    )


class AlertDispatcher:
    """Session-scoped alert deduplication."""

    def __init__(self):
        self._alerted: Dict[str, Set[str]] = {}

    def has_alerted(self, group_key: str) -> bool:
        return group_key in self._alerted

    def prime(self, groups: Iterable[NotificationGroup]) -> int:
        """
        Mark every prominent group as already alerted without emitting.

        Used for the first pass of a session and for load-more pages.

        Returns:
            Number of groups marked
        """
        marked = 0
        for group in groups:
            if not group.is_prominent:
                continue
            self._alerted.setdefault(group.key, set()).update(group.event_ids)
            marked += 1
        return marked

    def dispatch(
        self,
        groups: Iterable[NotificationGroup],
        previously_seen: Optional[Set[str]] = None,
    ) -> List[AlertRequest]:
        """
        Decide which groups raise an alert this cycle.

        Args:
            groups: Sorted, dismissal-filtered groups
            previously_seen: Event ids seen in earlier cycles; None means
                every event counts as new

        Returns:
            Alerts to raise, in group order
        """
        seen = previously_seen if previously_seen is not None else set()
        alerts = []

        for group in groups:
            if not group.is_prominent:
                continue

            ids = set(group.event_ids)
            alerted = self._alerted.get(group.key, set())
            new_ids = ids - seen - alerted
            if not new_ids:
                continue

            alert = build_alert(group)
            alerts.append(alert)
            self._alerted[group.key] = alerted | ids
            ALERTS_EMITTED.labels(kind=alert_kind(group)).inc()

            logger.info(
                "alert_dispatched",
                group_key=group.key,
                new_events=len(new_ids),
                title=alert.title,
            )

        return alerts

    def reset(self) -> None:
        self._alerted.clear()
