"""Data models for notification events received from the remote source.

Defines the raw event payload (immutable once received), the reason-code
and subject-type vocabularies, and the typed detail objects returned when
a subject or pull request is fetched.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ReasonCode(str, Enum):
    """Why the server raised a notification event."""

    ASSIGN = "assign"
    AUTHOR = "author"
    COMMENT = "comment"
    INVITATION = "invitation"
    MANUAL = "manual"
    MENTION = "mention"
    REVIEW_REQUESTED = "review_requested"
    SECURITY_ALERT = "security_alert"
    STATE_CHANGE = "state_change"
    SUBSCRIBED = "subscribed"
    TEAM_MENTION = "team_mention"
    CI_ACTIVITY = "ci_activity"


class SubjectType(str, Enum):
    """Known subject types. Subjects carry the raw string so new types pass through."""

    ISSUE = "Issue"
    PULL_REQUEST = "PullRequest"
    RELEASE = "Release"
    DISCUSSION = "Discussion"
    COMMIT = "Commit"
    CHECK_SUITE = "CheckSuite"


# Subject types whose liveness can be resolved by fetching the subject
TRACKED_SUBJECT_TYPES = frozenset({SubjectType.ISSUE, SubjectType.PULL_REQUEST})


class SubjectState(str, Enum):
    """Lifecycle state of an issue or pull request."""

    OPEN = "open"
    CLOSED = "closed"
    MERGED = "merged"
    DELETED = "deleted"
    UNKNOWN = "unknown"


class Owner(BaseModel):
    """Repository owner (user or organization)"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    login: str
    id: Optional[int] = None


class Repository(BaseModel):
    """Repository an event belongs to"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: Optional[int] = None
    name: str
    full_name: str
    html_url: Optional[str] = None
    owner: Optional[Owner] = None


class Subject(BaseModel):
    """The issue, pull request, release, ... an event is about"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    title: str
    url: Optional[str] = None
    type: str
    latest_comment_url: Optional[str] = None

    @property
    def is_tracked(self) -> bool:
        """Whether liveness can be resolved for this subject."""
        return bool(self.url) and self.type in TRACKED_SUBJECT_TYPES


class RawEvent(BaseModel):
    """A single notification event as delivered by the remote source.

    Immutable once received; identity is ``id``.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    unread: bool = True
    reason: ReasonCode
    updated_at: datetime
    last_read_at: Optional[datetime] = None
    subject: Subject
    repository: Repository
    url: str = Field(default="", description="Thread URL")
    subscription_url: Optional[str] = None

    @property
    def group_key(self) -> str:
        """Deterministic identity of the group this event belongs to."""
        return make_group_key(self.repository.full_name, self.subject.url)


def make_group_key(repository_full_name: str, subject_url: Optional[str]) -> str:
    """Build a GroupKey from repository full name and subject URL."""
    return f"{repository_full_name}#{subject_url or ''}"


class EventPage(BaseModel):
    """One page of the notification listing.

    ``received`` counts every item the server returned, including ones
    that failed validation and were skipped, so paging decisions are made
    against what the server actually sent.
    """

    page: int
    events: List[RawEvent] = Field(default_factory=list)
    received: int = 0

    def is_last(self, page_size: int) -> bool:
        """A page shorter than ``page_size`` means no further pages."""
        return self.received < page_size


class Identity(BaseModel):
    """The authenticated caller"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    login: str
    id: Optional[int] = None
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    html_url: Optional[str] = None


class TeamOrganization(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    login: str


class Team(BaseModel):
    """A team the caller belongs to"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    slug: str
    name: str
    id: Optional[int] = None
    organization: Optional[TeamOrganization] = None


class ReviewerRef(BaseModel):
    """A user currently requested as reviewer on a pull request"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    login: str
    id: Optional[int] = None


class TeamRef(BaseModel):
    """A team currently requested as reviewer on a pull request"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    slug: str
    name: Optional[str] = None
    id: Optional[int] = None


def _lifecycle_state(
    state: Optional[str], merged: Optional[bool], merged_at: Optional[datetime]
) -> SubjectState:
    if merged or merged_at is not None:
        return SubjectState.MERGED
    try:
        return SubjectState((state or "").lower())
    except ValueError:
        return SubjectState.UNKNOWN


class SubjectDetail(BaseModel):
    """Issue or pull request detail. Unknown fields are ignored."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    state: Optional[str] = None
    merged: Optional[bool] = None
    merged_at: Optional[datetime] = None
    title: Optional[str] = None
    html_url: Optional[str] = None

    @property
    def lifecycle_state(self) -> SubjectState:
        return _lifecycle_state(self.state, self.merged, self.merged_at)


class PullRequestDetail(BaseModel):
    """Pull request detail used for team and draft disambiguation."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    draft: bool = False
    state: Optional[str] = None
    merged: Optional[bool] = None
    merged_at: Optional[datetime] = None
    requested_reviewers: List[ReviewerRef] = Field(default_factory=list)
    requested_teams: List[TeamRef] = Field(default_factory=list)

    @field_validator("draft", mode="before")
    @classmethod
    def _null_draft(cls, v: object) -> bool:
        return bool(v)

    @field_validator("requested_reviewers", "requested_teams", mode="before")
    @classmethod
    def _null_lists(cls, v: object) -> object:
        return v or []

    @property
    def lifecycle_state(self) -> SubjectState:
        return _lifecycle_state(self.state, self.merged, self.merged_at)
