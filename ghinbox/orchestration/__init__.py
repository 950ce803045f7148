"""Orchestration of refresh cycles for one login."""

from ghinbox.orchestration.result import RefreshResult
from ghinbox.orchestration.session import InboxSession

__all__ = [
    "InboxSession",
    "RefreshResult",
]
