"""Refresh cycle result data structure."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ghinbox.models.inbox import AlertRequest

STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"
STATUS_UNAUTHORIZED = "unauthorized"
STATUS_DISCARDED = "discarded"
STATUS_INACTIVE = "inactive"


@dataclass
class RefreshResult:
    """Outcome of one refresh cycle.

    ``status`` is one of success, failed, unauthorized, discarded (the
    session ended while the cycle was in flight) or inactive (no session).
    """

    mode: str
    status: str = STATUS_SUCCESS
    events: int = 0
    groups: int = 0
    dismissed_hidden: int = 0
    pages: int = 0
    alerts: List[AlertRequest] = field(default_factory=list)
    duration_seconds: float = 0.0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "mode": self.mode,
            "status": self.status,
            "events": self.events,
            "groups": self.groups,
            "dismissed_hidden": self.dismissed_hidden,
            "pages": self.pages,
            "alerts": [alert.group_key for alert in self.alerts],
            "duration_seconds": round(self.duration_seconds, 3),
            "error": self.error,
        }
