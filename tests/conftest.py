"""Shared fixtures: on-disk storage, event factory and an in-memory source."""

from collections import defaultdict
from typing import Dict, List, Optional, Union

import pytest
import structlog

from ghinbox.models.events import (
    EventPage,
    Identity,
    PullRequestDetail,
    RawEvent,
    SubjectDetail,
    Team,
)
from ghinbox.services.providers.base import NotificationSource
from ghinbox.services.storage import StateStorage


def subject_url(repo: str, number: int, subject_type: str = "PullRequest") -> str:
    kind = "pulls" if subject_type == "PullRequest" else "issues"
    return f"https://api.github.com/repos/{repo}/{kind}/{number}"


def build_event(
    event_id: str,
    reason: str = "subscribed",
    subject_type: str = "PullRequest",
    number: int = 1,
    repo: str = "octo/repo",
    title: Optional[str] = None,
    updated_at: str = "2025-01-01T00:00:00Z",
    url: Optional[str] = "default",
) -> RawEvent:
    if url == "default":
        url = subject_url(repo, number, subject_type)
    return RawEvent.model_validate(
        {
            "id": event_id,
            "unread": True,
            "reason": reason,
            "updated_at": updated_at,
            "subject": {
                "title": title or f"{subject_type} {number}",
                "url": url,
                "type": subject_type,
            },
            "repository": {
                "name": repo.split("/")[1],
                "full_name": repo,
            },
            "url": f"https://api.github.com/notifications/threads/{event_id}",
        }
    )


class FakeSource(NotificationSource):
    """In-memory notification source; unknown subjects are open PRs/issues."""

    def __init__(self):
        self.identity = Identity(login="octocat")
        self.pages: Dict[int, List[RawEvent]] = {}
        self.subjects: Dict[str, Union[SubjectDetail, Exception]] = {}
        self.pull_requests: Dict[str, Union[PullRequestDetail, Exception]] = {}
        self.teams: List[Team] = []
        self.user_error: Optional[Exception] = None
        self.list_error: Optional[Exception] = None
        self.calls: Dict[str, List] = defaultdict(list)
        self.closed = False

    async def get_current_user(self) -> Identity:
        self.calls["user"].append(None)
        if self.user_error is not None:
            raise self.user_error
        return self.identity

    async def list_events(self, page, page_size, since=None) -> EventPage:
        self.calls["list_events"].append(page)
        if self.list_error is not None:
            raise self.list_error
        events = self.pages.get(page, [])
        return EventPage(page=page, events=events, received=len(events))

    async def get_subject_detail(self, url: str) -> SubjectDetail:
        self.calls["subject"].append(url)
        value = self.subjects.get(url, SubjectDetail(state="open"))
        if isinstance(value, Exception):
            raise value
        return value

    async def get_pull_request_detail(self, url: str) -> PullRequestDetail:
        self.calls["pull_request"].append(url)
        value = self.pull_requests.get(url, PullRequestDetail())
        if isinstance(value, Exception):
            raise value
        return value

    async def get_user_teams(self) -> List[Team]:
        self.calls["teams"].append(None)
        return list(self.teams)

    async def mark_read(self, event_id: str) -> bool:
        self.calls["mark_read"].append(event_id)
        return True

    async def close(self) -> None:
        self.closed = True


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def storage(tmp_path):
    store = StateStorage(tmp_path / "state")
    yield store
    store.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def make_event():
    return build_event


@pytest.fixture
def make_url():
    return subject_url


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Keep a test's logging configuration from leaking into later tests."""
    yield
    structlog.reset_defaults()
