"""Partition emitted groups into display buckets."""

from typing import Iterable

from ghinbox.models.inbox import (
    GENERIC_TEAM_MENTION_NAME,
    GENERIC_TEAM_MENTION_SLUG,
    GENERIC_TEAM_REVIEW_NAME,
    GENERIC_TEAM_REVIEW_SLUG,
    InboxView,
    NotificationGroup,
    TeamBucket,
)


def _add_to_team_bucket(
    view: InboxView, slug: str, name: str, group: NotificationGroup
) -> None:
    bucket = view.team_buckets.get(slug)
    if bucket is None:
        bucket = TeamBucket(slug=slug, name=name)
        view.team_buckets[slug] = bucket
    bucket.groups.append(group)


def build_inbox_view(groups: Iterable[NotificationGroup]) -> InboxView:
    """
    Assign each group to exactly one bucket.

    Precedence: review requests (personal, or the owning team's bucket),
    mentions, team mentions, own content, other prominent groups, the rest.
    Order within a bucket follows the input order.
    """
    view = InboxView()

    for group in groups:
        if group.has_review_request:
            if group.is_team_review_request:
                if group.team_slug and group.team_slug != GENERIC_TEAM_REVIEW_SLUG:
                    _add_to_team_bucket(
                        view,
                        group.team_slug,
                        group.team_name or group.team_slug,
                        group,
                    )
                else:
                    _add_to_team_bucket(
                        view, GENERIC_TEAM_REVIEW_SLUG, GENERIC_TEAM_REVIEW_NAME, group
                    )
            else:
                view.review_requests.append(group)
        elif group.has_mention:
            view.mentions.append(group)
        elif group.has_team_mention:
            _add_to_team_bucket(
                view, GENERIC_TEAM_MENTION_SLUG, GENERIC_TEAM_MENTION_NAME, group
            )
        elif group.is_own_content:
            view.own_content.append(group)
        elif group.is_prominent:
            view.needs_attention.append(group)
        else:
            view.others.append(group)

    return view
