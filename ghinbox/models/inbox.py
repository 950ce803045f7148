"""Data models for grouped, classified notifications.

Defines:
- TeamInfo: cached result of team/draft disambiguation for one event
- NotificationGroup: events for one subject plus classification flags
- AlertRequest: an external alert the dispatcher wants raised
- InboxView: groups partitioned into display buckets

Usage:
    from ghinbox.models.inbox import NotificationGroup

    group = NotificationGroup.from_event(event)
    group.events.append(other_event)
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ghinbox.models.events import RawEvent, Repository, Subject

GENERIC_TEAM_REVIEW_SLUG = "_team_review_requests"
GENERIC_TEAM_REVIEW_NAME = "Team Review Requests"
GENERIC_TEAM_MENTION_SLUG = "_team_mentions"
GENERIC_TEAM_MENTION_NAME = "Team Mentions"


class TeamInfo(BaseModel):
    """Team/draft classification of a review-request notification.

    Attributes:
        is_team_review_request: Review is owned by a team, not the caller.
        is_draft: Pull request draft flag (None for entries that predate it).
        team_slug: Matched team slug; absent means the generic bucket.
        team_name: Display name of the matched team.
    """

    model_config = ConfigDict(frozen=True)

    is_team_review_request: bool
    is_draft: Optional[bool] = None
    team_slug: Optional[str] = None
    team_name: Optional[str] = None


class NotificationGroup(BaseModel):
    """All events for one subject, with classification flags.

    Mutable only while the classification pass runs.
    """

    key: str
    repository: Repository
    subject: Subject
    events: List[RawEvent] = Field(default_factory=list)

    is_own_content: bool = False
    is_prominent: bool = False
    has_review_request: bool = False
    is_team_review_request: bool = False
    has_mention: bool = False
    has_team_mention: bool = False
    is_draft_pr: bool = False

    team_slug: Optional[str] = None
    team_name: Optional[str] = None

    @classmethod
    def from_event(cls, event: RawEvent) -> "NotificationGroup":
        return cls(
            key=event.group_key,
            repository=event.repository,
            subject=event.subject,
        )

    @property
    def first_event(self) -> RawEvent:
        return self.events[0]

    @property
    def latest_updated_at(self) -> datetime:
        return max(e.updated_at for e in self.events)

    @property
    def event_ids(self) -> List[str]:
        return [e.id for e in self.events]


class AlertRequest(BaseModel):
    """External alert for a group with genuinely new activity."""

    model_config = ConfigDict(frozen=True)

    group_key: str
    title: str
    body: str
    click_url: Optional[str] = None
    tag: str


class TeamBucket(BaseModel):
    """Groups owned by one team (or a generic team bucket)."""

    slug: str
    name: str
    groups: List[NotificationGroup] = Field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.groups)


class InboxView(BaseModel):
    """Emitted groups partitioned into exclusive display buckets."""

    review_requests: List[NotificationGroup] = Field(default_factory=list)
    team_buckets: Dict[str, TeamBucket] = Field(default_factory=dict)
    mentions: List[NotificationGroup] = Field(default_factory=list)
    own_content: List[NotificationGroup] = Field(default_factory=list)
    needs_attention: List[NotificationGroup] = Field(default_factory=list)
    others: List[NotificationGroup] = Field(default_factory=list)

    def team_bucket(self, slug: str) -> Optional[TeamBucket]:
        return self.team_buckets.get(slug)

    @property
    def total(self) -> int:
        return (
            len(self.review_requests)
            + sum(b.count for b in self.team_buckets.values())
            + len(self.mentions)
            + len(self.own_content)
            + len(self.needs_attention)
            + len(self.others)
        )
