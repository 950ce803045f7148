from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from ghinbox.models.events import (
    EventPage,
    Identity,
    PullRequestDetail,
    SubjectDetail,
    Team,
)


class NotificationSource(ABC):
    """Abstract base class for remote notification sources

    Every call may raise UnauthorizedError when the credentials are no
    longer accepted. Subject lookups raise NotFoundError for deleted
    subjects so callers can tell them apart from transient failures.
    """

    @abstractmethod
    async def get_current_user(self) -> Identity:
        """Fetch the authenticated caller.

        Raises:
            UnauthorizedError: If the credentials are invalid or expired
        """
        pass

    @abstractmethod
    async def list_events(
        self,
        page: int,
        page_size: int,
        since: Optional[datetime] = None,
    ) -> EventPage:
        """List one page of notification events, newest first.

        Args:
            page: 1-based page number
            page_size: Events per page
            since: Only events updated after this instant (defaults to a
                fixed window before now)

        Returns:
            The page; a page shorter than ``page_size`` is the last one
        """
        pass

    @abstractmethod
    async def get_subject_detail(self, url: str) -> SubjectDetail:
        """Fetch an issue or pull request by API URL.

        Raises:
            NotFoundError: If the subject no longer exists
            TransientFetchError: On network failures and server errors
        """
        pass

    @abstractmethod
    async def get_pull_request_detail(self, url: str) -> PullRequestDetail:
        """Fetch requested reviewers, requested teams and the draft flag."""
        pass

    @abstractmethod
    async def get_user_teams(self) -> List[Team]:
        """Fetch every team the caller belongs to."""
        pass

    @abstractmethod
    async def mark_read(self, event_id: str) -> bool:
        """Mark a notification thread read. Returns True when acknowledged."""
        pass

    async def close(self) -> None:
        """Release network resources."""
        return None
