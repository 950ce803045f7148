"""
TTL key/value stores.

Implements the two expiry shapes every cache in the inbox is built on:
1. TTLStore: one slot per key, each with its own write timestamp
2. ItemTTLStore: one slot holding a collection whose items expire
   independently (writes prune expired siblings)

Eviction is lazy: expired entries are removed when they are touched.
"""

import time
from typing import Any, Callable, Dict, Optional

import structlog
from pydantic import ValidationError

from ghinbox.models.cache import CacheEntry
from ghinbox.observability.metrics import CACHE_OPERATIONS
from ghinbox.services.storage import StateStorage

logger = structlog.get_logger()

Clock = Callable[[], float]


class TTLStore:
    """
    Key/value store whose entries are valid for ``ttl_seconds`` after write.

    Each key lives in its own slot ``<namespace>/<key>`` holding
    ``{data, written_at}``. A read of an expired entry deletes it and
    behaves as a miss.
    """

    def __init__(
        self,
        storage: StateStorage,
        namespace: str,
        ttl_seconds: float,
        clock: Clock = time.time,
    ):
        """
        Initialize TTL store.

        Args:
            storage: Backing slot storage
            namespace: Slot prefix owned by this store
            ttl_seconds: Entry lifetime
            clock: Epoch-seconds clock (injectable for tests)
        """
        self.storage = storage
        self.namespace = namespace
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def _slot(self, key: str) -> str:
        return f"{self.namespace}/{key}"

    def _load_entry(self, key: str) -> Optional[CacheEntry]:
        raw = self.storage.read(self._slot(key))
        if raw is None:
            return None
        try:
            return CacheEntry.model_validate(raw)
        except ValidationError:
            logger.warning("ttl_store_corrupt_entry", namespace=self.namespace, key=key)
            self.storage.delete(self._slot(key))
            return None

    def get(self, key: str) -> Optional[Any]:
        """
        Get a value written within the TTL.

        Args:
            key: Entry key

        Returns:
            Stored value or None on miss/expiry
        """
        entry = self._load_entry(key)

        if entry is None:
            CACHE_OPERATIONS.labels(cache=self.namespace, operation="miss").inc()
            return None

        if not entry.is_valid(self._clock(), self.ttl_seconds):
            self.storage.delete(self._slot(key))
            CACHE_OPERATIONS.labels(cache=self.namespace, operation="expired").inc()
            logger.debug("ttl_store_expired", namespace=self.namespace, key=key)
            return None

        CACHE_OPERATIONS.labels(cache=self.namespace, operation="hit").inc()
        return entry.data

    def set(self, key: str, value: Any) -> None:
        """
        Store a value stamped with the current time.

        Args:
            key: Entry key
            value: JSON-serializable value
        """
        entry = CacheEntry(data=value, written_at=self._clock())
        self.storage.write(self._slot(key), entry.model_dump())
        CACHE_OPERATIONS.labels(cache=self.namespace, operation="set").inc()

    def remove(self, key: str) -> None:
        self.storage.delete(self._slot(key))

    def clear(self) -> None:
        """Remove every entry in this namespace."""
        for slot in self.storage.slots(prefix=f"{self.namespace}/"):
            self.storage.delete(slot)
        logger.info("ttl_store_cleared", namespace=self.namespace)


class ItemTTLStore:
    """
    A single persisted collection whose items expire independently.

    The slot ``<namespace>`` holds ``{data: {key: {value, written_at}},
    written_at}``. Writing one item prunes every expired sibling so the
    collection never grows without bound.
    """

    def __init__(
        self,
        storage: StateStorage,
        namespace: str,
        ttl_seconds: float,
        clock: Clock = time.time,
    ):
        self.storage = storage
        self.namespace = namespace
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def _load(self) -> Dict[str, Dict[str, Any]]:
        raw = self.storage.read(self.namespace)
        if not isinstance(raw, dict):
            return {}
        data = raw.get("data")
        if not isinstance(data, dict):
            return {}
        return {
            key: item
            for key, item in data.items()
            if isinstance(item, dict) and "written_at" in item
        }

    def _save(self, items: Dict[str, Dict[str, Any]]) -> None:
        self.storage.write(
            self.namespace, {"data": items, "written_at": self._clock()}
        )

    def _is_live(self, item: Dict[str, Any], now: float) -> bool:
        try:
            return now - float(item["written_at"]) < self.ttl_seconds
        except (TypeError, ValueError):
            return False

    def get_item(self, key: str) -> Optional[Any]:
        """
        Get one item if it was written within the TTL.

        An expired item is evicted on read.
        """
        items = self._load()
        item = items.get(key)

        if item is None:
            CACHE_OPERATIONS.labels(cache=self.namespace, operation="miss").inc()
            return None

        if not self._is_live(item, self._clock()):
            del items[key]
            self._save(items)
            CACHE_OPERATIONS.labels(cache=self.namespace, operation="expired").inc()
            return None

        CACHE_OPERATIONS.labels(cache=self.namespace, operation="hit").inc()
        return item.get("value")

    def set_item(self, key: str, value: Any) -> None:
        """Store one item and prune expired siblings."""
        now = self._clock()
        items = self._load()
        items[key] = {"value": value, "written_at": now}

        expired = [k for k, item in items.items() if not self._is_live(item, now)]
        for k in expired:
            del items[k]

        self._save(items)
        CACHE_OPERATIONS.labels(cache=self.namespace, operation="set").inc()

        if expired:
            logger.debug(
                "item_store_pruned", namespace=self.namespace, removed=len(expired)
            )

    def remove_item(self, key: str) -> bool:
        items = self._load()
        if key not in items:
            return False
        del items[key]
        self._save(items)
        return True

    def clear(self) -> None:
        self.storage.delete(self.namespace)
        logger.info("item_store_cleared", namespace=self.namespace)
