"""
Subject lifecycle state cache.

Remembers whether an issue or pull request is open, closed, merged,
deleted or unknown, keyed by subject API URL, on a short TTL.
"""

import time
from typing import Optional

import structlog

from ghinbox.models.events import SubjectState
from ghinbox.services.cache_service import Clock, ItemTTLStore
from ghinbox.services.storage import StateStorage

logger = structlog.get_logger()

STATE_CACHE_NAMESPACE = "github_state_cache"

# States that hide a subject from the inbox
HIDDEN_STATES = frozenset(
    {
        SubjectState.CLOSED,
        SubjectState.MERGED,
        SubjectState.DELETED,
        SubjectState.UNKNOWN,
    }
)


class StateCache:
    """Per-subject-URL lifecycle state with a short TTL."""

    def __init__(
        self,
        storage: StateStorage,
        ttl_seconds: float = 120,
        clock: Clock = time.time,
    ):
        self._store = ItemTTLStore(storage, STATE_CACHE_NAMESPACE, ttl_seconds, clock)

    def get(self, subject_url: str) -> Optional[SubjectState]:
        value = self._store.get_item(subject_url)
        if value is None:
            return None
        try:
            return SubjectState(value)
        except ValueError:
            logger.warning("state_cache_bad_value", url=subject_url, value=value)
            return None

    def set(self, subject_url: str, state: SubjectState) -> None:
        self._store.set_item(subject_url, SubjectState(state).value)

    def is_closed_or_merged(self, subject_url: str) -> bool:
        """
        Whether a subject should be hidden.

        True for closed, merged, deleted and unknown subjects and for
        subjects with no valid cached state.
        """
        state = self.get(subject_url)
        return state is None or state in HIDDEN_STATES

    def clear(self) -> None:
        self._store.clear()
