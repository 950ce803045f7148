"""
Team classification and team membership caches.

TeamCache holds the result of team/draft disambiguation per event id.
Its namespace embeds the classification logic version, so bumping
TEAM_CACHE_VERSION invalidates every prior entry; purge_prior_versions()
reclaims the space held by older namespaces.

UserTeamsCache holds the caller's team memberships.
"""

import time
from typing import List, Optional, Set

import structlog
from pydantic import ValidationError

from ghinbox.models.cache import (
    TEAM_CACHE_BASE_NAMESPACE,
    TEAM_CACHE_VERSION,
    team_cache_namespace,
)
from ghinbox.models.events import Team
from ghinbox.models.inbox import TeamInfo
from ghinbox.services.cache_service import Clock, ItemTTLStore, TTLStore
from ghinbox.services.storage import StateStorage

logger = structlog.get_logger()

USER_TEAMS_NAMESPACE = "github_user_teams"


class TeamCache:
    """Per-event-id TeamInfo, versioned by classification logic."""

    def __init__(
        self,
        storage: StateStorage,
        ttl_seconds: float = 12 * 3600,
        version: int = TEAM_CACHE_VERSION,
        clock: Clock = time.time,
    ):
        self.storage = storage
        self.version = version
        self.namespace = team_cache_namespace(version)
        self._store = ItemTTLStore(storage, self.namespace, ttl_seconds, clock)

    def get(self, event_id: str) -> Optional[TeamInfo]:
        value = self._store.get_item(event_id)
        if value is None:
            return None
        try:
            return TeamInfo.model_validate(value)
        except ValidationError:
            logger.warning("team_cache_bad_entry", event_id=event_id)
            self._store.remove_item(event_id)
            return None

    def set(
        self,
        event_id: str,
        is_team: bool,
        slug: Optional[str] = None,
        name: Optional[str] = None,
        is_draft: Optional[bool] = None,
    ) -> TeamInfo:
        info = TeamInfo(
            is_team_review_request=is_team,
            is_draft=is_draft,
            team_slug=slug,
            team_name=name,
        )
        self._store.set_item(event_id, info.model_dump())
        return info

    def remove(self, event_id: str) -> None:
        self._store.remove_item(event_id)

    def clear(self) -> None:
        self._store.clear()

    def purge_prior_versions(self) -> List[str]:
        """
        Delete every team cache namespace other than the current one.

        Covers the known legacy namespaces (unversioned and v2 up to the
        current version) plus any other enumerated slot under the team
        cache prefix.

        Returns:
            Slot names that were deleted
        """
        candidates = {team_cache_namespace(v) for v in range(1, self.version)}
        candidates.update(self.storage.slots(prefix=TEAM_CACHE_BASE_NAMESPACE))

        purged = []
        for slot in sorted(candidates):
            if slot.split("/", 1)[0] == self.namespace:
                continue
            if self.storage.delete(slot):
                purged.append(slot)

        logger.info(
            "team_cache_prior_versions_purged",
            current=self.namespace,
            purged=len(purged),
        )
        return purged


class UserTeamsCache:
    """The caller's team memberships, keyed by login."""

    def __init__(
        self,
        storage: StateStorage,
        ttl_seconds: float = 24 * 3600,
        clock: Clock = time.time,
    ):
        self._store = TTLStore(storage, USER_TEAMS_NAMESPACE, ttl_seconds, clock)

    def get(self, login: str) -> Optional[List[Team]]:
        value = self._store.get(login)
        if value is None:
            return None
        try:
            return [Team.model_validate(item) for item in value]
        except (ValidationError, TypeError):
            logger.warning("user_teams_cache_bad_entry", login=login)
            self._store.remove(login)
            return None

    def set(self, login: str, teams: List[Team]) -> None:
        self._store.set(login, [team.model_dump() for team in teams])

    def team_slugs(self, login: str) -> Optional[Set[str]]:
        teams = self.get(login)
        if teams is None:
            return None
        return {team.slug for team in teams}

    def clear(self) -> None:
        self._store.clear()
