"""
Persistent slot storage.

A directory-backed key/value store of named slots. Each slot holds a
JSON-serializable value; every cache and store in the inbox keeps its
state in one or more namespaced slots here.
"""

import json
from pathlib import Path
from typing import Any, List, Optional, Union

import diskcache
import structlog

logger = structlog.get_logger()


class StateStorage:
    """
    Namespaced slot storage on disk.

    Values are stored as JSON text so only JSON-serializable data can be
    persisted. Read failures behave as an absent slot.
    """

    def __init__(self, directory: Union[str, Path]):
        """
        Initialize slot storage.

        Args:
            directory: Directory holding the on-disk store
        """
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._cache = diskcache.Cache(str(self.directory))

        logger.debug("state_storage_opened", directory=str(self.directory))

    def read(self, slot: str) -> Optional[Any]:
        """
        Read a slot.

        Args:
            slot: Slot name

        Returns:
            Decoded value or None if the slot is absent or unreadable
        """
        try:
            raw = self._cache.get(slot)
            if raw is None:
                return None
            return json.loads(raw)
        except Exception as e:
            logger.error("state_storage_read_error", slot=slot, error=str(e))
            return None

    def write(self, slot: str, value: Any) -> None:
        """
        Write a slot.

        Args:
            slot: Slot name
            value: JSON-serializable value
        """
        try:
            self._cache.set(slot, json.dumps(value))
        except Exception as e:
            logger.error("state_storage_write_error", slot=slot, error=str(e))

    def delete(self, slot: str) -> bool:
        """
        Delete a slot.

        Returns:
            True if the slot existed
        """
        try:
            return bool(self._cache.delete(slot))
        except Exception as e:
            logger.error("state_storage_delete_error", slot=slot, error=str(e))
            return False

    def slots(self, prefix: str = "") -> List[str]:
        """
        Enumerate slot names starting with ``prefix``.

        Args:
            prefix: Name prefix to filter on ("" for all)

        Returns:
            Sorted slot names
        """
        return sorted(
            key
            for key in self._cache.iterkeys()
            if isinstance(key, str) and key.startswith(prefix)
        )

    def clear(self) -> None:
        """Delete every slot."""
        self._cache.clear()
        logger.info("state_storage_cleared", directory=str(self.directory))

    def close(self) -> None:
        self._cache.close()
