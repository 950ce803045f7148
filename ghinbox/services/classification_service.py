"""
Grouping and classification pipeline.

Turns the raw events of one refresh cycle into sorted NotificationGroups:
1. Liveness: fetch the state of uncached issue/PR subjects (bounded)
2. Grouping: merge events by group key, skipping hidden subjects
3. Reason codes: set flags from each event's reason (no remote calls)
4. Team/draft disambiguation for review requests (bounded, cached)
5. Team mentions go to the generic team-mention bucket and are never prominent
6. Drafts are dropped
7. Sort: own content, then prominent, then the rest; newest first

Per-item remote failures are isolated and fall back to conservative
defaults. Only UnauthorizedError aborts the pass.
"""

import asyncio
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence

import structlog

from ghinbox.models.concurrency import ConcurrencyConfig
from ghinbox.models.events import (
    Identity,
    PullRequestDetail,
    RawEvent,
    ReasonCode,
    SubjectState,
    SubjectType,
    Team,
    TeamRef,
)
from ghinbox.models.inbox import (
    GENERIC_TEAM_MENTION_NAME,
    GENERIC_TEAM_MENTION_SLUG,
    GENERIC_TEAM_REVIEW_NAME,
    GENERIC_TEAM_REVIEW_SLUG,
    NotificationGroup,
    TeamInfo,
)
from ghinbox.observability.metrics import ENRICHMENT_RESULTS
from ghinbox.services.providers.base import NotificationSource
from ghinbox.services.state_cache import StateCache
from ghinbox.services.team_cache import TeamCache
from ghinbox.utils.exceptions import NotFoundError, UnauthorizedError

logger = structlog.get_logger()


class ReasonRule(NamedTuple):
    flag: Optional[str]
    prominent: bool


# Every reason code must appear here
REASON_RULES: Dict[ReasonCode, ReasonRule] = {
    ReasonCode.REVIEW_REQUESTED: ReasonRule("has_review_request", True),
    ReasonCode.MENTION: ReasonRule("has_mention", True),
    ReasonCode.TEAM_MENTION: ReasonRule("has_team_mention", False),
    ReasonCode.AUTHOR: ReasonRule("is_own_content", False),
    ReasonCode.ASSIGN: ReasonRule(None, True),
    # Not enough signal without fetching the comment body
    ReasonCode.COMMENT: ReasonRule(None, False),
    ReasonCode.INVITATION: ReasonRule(None, False),
    ReasonCode.MANUAL: ReasonRule(None, False),
    ReasonCode.SECURITY_ALERT: ReasonRule(None, False),
    ReasonCode.STATE_CHANGE: ReasonRule(None, False),
    ReasonCode.SUBSCRIBED: ReasonRule(None, False),
    ReasonCode.CI_ACTIVITY: ReasonRule(None, False),
}

_unhandled = set(ReasonCode) - set(REASON_RULES)
if _unhandled:
    raise RuntimeError(
        f"Reason codes without a classification rule: {sorted(r.value for r in _unhandled)}"
    )


def apply_reason_rules(group: NotificationGroup) -> None:
    """Set flags on ``group`` from the reason code of every member event."""
    for event in group.events:
        rule = REASON_RULES[event.reason]
        if rule.flag:
            setattr(group, rule.flag, True)
        if rule.prominent:
            group.is_prominent = True


def _normalize_slug(slug: str) -> str:
    return slug.lower().replace("_", "-")


def match_requested_team(
    requested_teams: Sequence[TeamRef], user_teams: Sequence[Team]
) -> Optional[Team]:
    """
    Find which of the caller's teams was requested for review.

    Exact slug match first, then a match that treats hyphen and
    underscore as the same character.
    """
    for requested in requested_teams:
        for team in user_teams:
            if team.slug == requested.slug:
                return team

    for requested in requested_teams:
        wanted = _normalize_slug(requested.slug)
        for team in user_teams:
            if _normalize_slug(team.slug) == wanted:
                return team

    return None


def resolve_team_info(
    pr: PullRequestDetail,
    identity: Identity,
    reason: ReasonCode,
    user_teams: Sequence[Team],
) -> TeamInfo:
    """
    Decide whether a review request belongs to a team or to the caller.

    A request counts as a team request when the caller is not personally
    listed as a reviewer and either a team is listed, nobody is listed, or
    the event reason is a review request. The last clause covers team
    requests that GitHub no longer shows (already fulfilled, or API lag);
    it also matches a personal request that was withdrawn.
    """
    login = identity.login.lower()
    personally_requested = any(
        reviewer.login.lower() == login for reviewer in pr.requested_reviewers
    )
    has_team_reviewers = len(pr.requested_teams) > 0
    no_reviewers_at_all = not pr.requested_teams and not pr.requested_reviewers
    is_review_reason = reason == ReasonCode.REVIEW_REQUESTED

    is_team_request = (
        (has_team_reviewers and not personally_requested)
        or (no_reviewers_at_all and not personally_requested and is_review_reason)
        or (is_review_reason and not personally_requested)
    )

    if not is_team_request:
        return TeamInfo(is_team_review_request=False, is_draft=pr.draft)

    team = match_requested_team(pr.requested_teams, user_teams)
    if team is None:
        return TeamInfo(
            is_team_review_request=True,
            is_draft=pr.draft,
            team_slug=GENERIC_TEAM_REVIEW_SLUG,
            team_name=GENERIC_TEAM_REVIEW_NAME,
        )

    return TeamInfo(
        is_team_review_request=True,
        is_draft=pr.draft,
        team_slug=team.slug,
        team_name=team.name,
    )


def apply_team_info(group: NotificationGroup, info: TeamInfo) -> None:
    group.is_draft_pr = bool(info.is_draft)
    if info.is_team_review_request:
        group.is_team_review_request = True
        group.is_prominent = False
        group.team_slug = info.team_slug or GENERIC_TEAM_REVIEW_SLUG
        group.team_name = info.team_name or GENERIC_TEAM_REVIEW_NAME


def sort_groups(groups: Iterable[NotificationGroup]) -> List[NotificationGroup]:
    """Own content first, then prominent, then the rest; newest first in a tier."""

    def tier(group: NotificationGroup) -> int:
        if group.is_own_content:
            return 0
        if group.is_prominent:
            return 1
        return 2

    return sorted(
        groups, key=lambda g: (tier(g), -g.latest_updated_at.timestamp())
    )


def _review_reason(group: NotificationGroup) -> ReasonCode:
    for event in group.events:
        if event.reason == ReasonCode.REVIEW_REQUESTED:
            return event.reason
    return group.first_event.reason


async def _gather_isolated(coros: List) -> None:
    """Run all coroutines to completion; re-raise UnauthorizedError afterwards."""
    results = await asyncio.gather(*coros, return_exceptions=True)
    for result in results:
        if isinstance(result, UnauthorizedError):
            raise result
    for result in results:
        if isinstance(result, BaseException):
            raise result


class ClassificationPipeline:
    """Groups and classifies the events of a refresh cycle."""

    def __init__(
        self,
        source: NotificationSource,
        state_cache: StateCache,
        team_cache: TeamCache,
        concurrency: Optional[ConcurrencyConfig] = None,
    ):
        self.source = source
        self.state_cache = state_cache
        self.team_cache = team_cache
        self.concurrency = concurrency or ConcurrencyConfig()

    async def classify(
        self,
        events: Sequence[RawEvent],
        identity: Optional[Identity],
        user_teams: Optional[Sequence[Team]] = None,
    ) -> List[NotificationGroup]:
        """
        Run the full pass over one cycle's events.

        Args:
            events: Deduplicated raw events
            identity: The caller; None skips team disambiguation
            user_teams: The caller's teams; None matches nothing

        Returns:
            Sorted groups with drafts removed

        Raises:
            UnauthorizedError: If the credentials were rejected mid-pass
        """
        await self.resolve_liveness(events)

        groups = self.group_events(events)
        for group in groups:
            apply_reason_rules(group)

        await self.resolve_teams(groups, identity, user_teams or [])

        for group in groups:
            self._apply_team_mention(group)

        drafts = [g for g in groups if g.is_draft_pr]
        emitted = sort_groups(g for g in groups if not g.is_draft_pr)

        logger.info(
            "notifications_classified",
            events=len(events),
            groups=len(emitted),
            drafts_hidden=len(drafts),
            team_reviews=sum(1 for g in emitted if g.is_team_review_request),
            prominent=sum(1 for g in emitted if g.is_prominent),
        )
        return emitted

    async def resolve_liveness(self, events: Sequence[RawEvent]) -> int:
        """
        Fetch the state of every tracked subject without a valid cache entry.

        Returns:
            Number of subjects fetched
        """
        urls: List[str] = []
        seen = set()
        for event in events:
            url = event.subject.url
            if not event.subject.is_tracked or url in seen:
                continue
            seen.add(url)
            if self.state_cache.get(url) is None:
                urls.append(url)

        if not urls:
            return 0

        semaphore = asyncio.Semaphore(self.concurrency.max_concurrent_liveness)

        async def fetch_state(url: str) -> None:
            async with semaphore:
                try:
                    detail = await self.source.get_subject_detail(url)
                    state = detail.lifecycle_state
                except UnauthorizedError:
                    raise
                except NotFoundError:
                    state = SubjectState.DELETED
                except Exception as e:
                    logger.warning("subject_state_fetch_failed", url=url, error=str(e))
                    state = SubjectState.UNKNOWN

                self.state_cache.set(url, state)
                ENRICHMENT_RESULTS.labels(stage="liveness", result=state.value).inc()

        await _gather_isolated([fetch_state(url) for url in urls])

        logger.debug("subject_states_resolved", count=len(urls))
        return len(urls)

    def group_events(self, events: Sequence[RawEvent]) -> List[NotificationGroup]:
        """Merge events by group key, skipping hidden subjects."""
        groups: Dict[str, NotificationGroup] = {}
        hidden = 0

        for event in events:
            if event.subject.is_tracked and self.state_cache.is_closed_or_merged(
                event.subject.url
            ):
                hidden += 1
                continue

            key = event.group_key
            group = groups.get(key)
            if group is None:
                group = NotificationGroup.from_event(event)
                groups[key] = group
            group.events.append(event)

        if hidden:
            logger.debug("events_hidden_by_state", count=hidden)
        return list(groups.values())

    async def resolve_teams(
        self,
        groups: Sequence[NotificationGroup],
        identity: Optional[Identity],
        user_teams: Sequence[Team],
    ) -> None:
        """Disambiguate team vs personal review requests on pull requests."""
        candidates = [
            g
            for g in groups
            if g.has_review_request
            and g.subject.type == SubjectType.PULL_REQUEST
            and g.subject.url
        ]
        if not candidates:
            return

        if identity is None:
            logger.debug("team_resolution_skipped_no_identity", count=len(candidates))
            return

        pending: List[NotificationGroup] = []
        for group in candidates:
            cached = self.team_cache.get(group.first_event.id)
            if cached is not None and cached.is_draft is not None:
                apply_team_info(group, cached)
            else:
                pending.append(group)

        quota = self.concurrency.max_team_resolutions_per_cycle
        queued, deferred = pending[:quota], pending[quota:]
        if deferred:
            ENRICHMENT_RESULTS.labels(stage="team", result="deferred").inc(
                len(deferred)
            )
            logger.info("team_resolutions_deferred", count=len(deferred))

        if not queued:
            return

        semaphore = asyncio.Semaphore(self.concurrency.max_concurrent_team_resolutions)

        async def resolve(group: NotificationGroup) -> None:
            async with semaphore:
                event_id = group.first_event.id
                try:
                    pr = await self.source.get_pull_request_detail(group.subject.url)
                except UnauthorizedError:
                    raise
                except Exception as e:
                    # Keep it a personal request so it stays visible
                    logger.warning(
                        "team_resolution_failed",
                        event_id=event_id,
                        url=group.subject.url,
                        error=str(e),
                    )
                    ENRICHMENT_RESULTS.labels(stage="team", result="failed").inc()
                    return

                info = resolve_team_info(
                    pr, identity, _review_reason(group), user_teams
                )
                self.team_cache.set(
                    event_id,
                    is_team=info.is_team_review_request,
                    slug=info.team_slug,
                    name=info.team_name,
                    is_draft=info.is_draft,
                )
                apply_team_info(group, info)
                ENRICHMENT_RESULTS.labels(
                    stage="team",
                    result="team" if info.is_team_review_request else "personal",
                ).inc()

        await _gather_isolated([resolve(group) for group in queued])

    def _apply_team_mention(self, group: NotificationGroup) -> None:
        if not group.has_team_mention:
            return
        if not group.is_team_review_request:
            group.team_slug = GENERIC_TEAM_MENTION_SLUG
            group.team_name = GENERIC_TEAM_MENTION_NAME
        group.is_prominent = False
