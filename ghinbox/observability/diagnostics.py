"""Leveled diagnostic event stream.

Every structured log event can also be delivered to in-process
subscribers (a debug panel, a CLI ``--verbose`` printer, a test). The
stream is a structlog processor: install it with
``configure_logging(diagnostics=stream)`` and subscribe with a minimum
level.

Usage:
    stream = DiagnosticStream()
    configure_logging(level="DEBUG", diagnostics=stream)

    unsubscribe = stream.subscribe(print_event, min_level="warning")
    ...
    unsubscribe()
"""

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from structlog.typing import EventDict, WrappedLogger

LEVELS: Dict[str, int] = {
    "debug": 10,
    "info": 20,
    "warning": 30,
    "error": 40,
    "critical": 50,
}


def _level_value(level: str) -> int:
    return LEVELS.get(level.lower(), LEVELS["info"])


@dataclass(frozen=True)
class DiagnosticEvent:
    """One emitted log event."""

    level: str
    event: str
    fields: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


Subscriber = Callable[[DiagnosticEvent], None]


class DiagnosticStream:
    """Fan-out of log events to subscribers, with a bounded history."""

    def __init__(self, history_size: int = 500):
        self._subscribers: Dict[int, Tuple[Subscriber, int]] = {}
        self._next_id = 0
        self._history: Deque[DiagnosticEvent] = deque(maxlen=history_size)
        self.delivery_failures = 0

    def subscribe(
        self,
        callback: Subscriber,
        min_level: str = "debug",
        replay: bool = False,
    ) -> Callable[[], None]:
        """Register a subscriber.

        Args:
            callback: Called with each event at or above ``min_level``
            min_level: Lowest level delivered
            replay: Deliver matching history immediately

        Returns:
            Function that removes the subscription
        """
        sub_id = self._next_id
        self._next_id += 1
        threshold = _level_value(min_level)
        self._subscribers[sub_id] = (callback, threshold)

        if replay:
            for event in list(self._history):
                if _level_value(event.level) >= threshold:
                    self._deliver(callback, event)

        def unsubscribe() -> None:
            self._subscribers.pop(sub_id, None)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: DiagnosticEvent) -> None:
        self._history.append(event)
        level = _level_value(event.level)
        for callback, threshold in list(self._subscribers.values()):
            if level >= threshold:
                self._deliver(callback, event)

    def _deliver(self, callback: Subscriber, event: DiagnosticEvent) -> None:
        # A broken subscriber must not break the logging call that fed it
        try:
            callback(event)
        except Exception:
            self.delivery_failures += 1

    def recent(
        self, min_level: str = "debug", limit: Optional[int] = None
    ) -> List[DiagnosticEvent]:
        """History at or above ``min_level``, oldest first."""
        threshold = _level_value(min_level)
        events = [e for e in self._history if _level_value(e.level) >= threshold]
        if limit is not None:
            events = events[-limit:]
        return events

    def __call__(
        self,
        logger: WrappedLogger,
        method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        """Structlog processor entry point; passes ``event_dict`` through."""
        fields = {
            k: v for k, v in event_dict.items() if k not in ("event", "level")
        }
        self.publish(
            DiagnosticEvent(
                level=str(event_dict.get("level", method_name)),
                event=str(event_dict.get("event", "")),
                fields=fields,
            )
        )
        return event_dict
