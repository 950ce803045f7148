"""
Dismissal and visited-group stores.

DismissalStore is a durable set of dismissed group keys. VisitedStore
records which groups the user opened; its entries expire after a fixed
window and are pruned whenever the store is touched.
"""

import time
from typing import Any, Dict, FrozenSet, List, Set

import structlog

from ghinbox.services.cache_service import Clock
from ghinbox.services.storage import StateStorage

logger = structlog.get_logger()

DISMISSED_SLOT = "dismissed_notifications"
VISITED_SLOT = "clicked_notifications"


def _is_legacy_id(value: Any) -> bool:
    """Bare numeric thread ids predate group-key dismissal."""
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    return isinstance(value, str) and value.isdigit()


class DismissalStore:
    """Durable set of dismissed group keys."""

    def __init__(self, storage: StateStorage):
        self.storage = storage
        self._keys: Set[str] = self._load()

    def _load(self) -> Set[str]:
        raw = self.storage.read(DISMISSED_SLOT)
        if not isinstance(raw, list):
            return set()

        if any(_is_legacy_id(item) for item in raw):
            # Numeric ids cannot be mapped to group keys; drop the lot once
            logger.warning("dismissed_legacy_ids_discarded", count=len(raw))
            self.storage.write(DISMISSED_SLOT, [])
            return set()

        return {item for item in raw if isinstance(item, str)}

    def _save(self) -> None:
        self.storage.write(DISMISSED_SLOT, sorted(self._keys))

    def dismiss(self, group_key: str) -> bool:
        """
        Dismiss a group. Idempotent.

        Returns:
            True if the key was not already dismissed
        """
        if group_key in self._keys:
            return False
        self._keys.add(group_key)
        self._save()
        logger.debug("group_dismissed", group_key=group_key)
        return True

    def is_dismissed(self, group_key: str) -> bool:
        return group_key in self._keys

    @property
    def dismissed_keys(self) -> FrozenSet[str]:
        return frozenset(self._keys)

    def clear(self) -> None:
        self._keys.clear()
        self.storage.delete(DISMISSED_SLOT)
        logger.info("dismissals_cleared")


class VisitedStore:
    """Group keys the user opened, each remembered for ``ttl_seconds``."""

    def __init__(
        self,
        storage: StateStorage,
        ttl_seconds: float = 7 * 86400,
        clock: Clock = time.time,
    ):
        self.storage = storage
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def _load_live(self) -> List[Dict[str, Any]]:
        """Read the record list, persisting the pruned form when needed."""
        raw = self.storage.read(VISITED_SLOT)
        if not isinstance(raw, list):
            return []

        now = self._clock()
        live = []
        for record in raw:
            try:
                if now - float(record["timestamp"]) < self.ttl_seconds:
                    live.append({"id": str(record["id"]), "timestamp": record["timestamp"]})
            except (KeyError, TypeError, ValueError):
                continue

        if len(live) != len(raw):
            self.storage.write(VISITED_SLOT, live)
        return live

    def mark_visited(self, group_key: str) -> None:
        records = [r for r in self._load_live() if r["id"] != group_key]
        records.append({"id": group_key, "timestamp": self._clock()})
        self.storage.write(VISITED_SLOT, records)

    def is_visited(self, group_key: str) -> bool:
        return any(r["id"] == group_key for r in self._load_live())

    def visited_keys(self) -> Set[str]:
        return {r["id"] for r in self._load_live()}

    def clear(self) -> None:
        self.storage.delete(VISITED_SLOT)
