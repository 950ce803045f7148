"""Helpers for turning API subject URLs into browser click targets."""

from typing import Optional

from ghinbox.models.events import Subject, SubjectType

API_REPOS_PREFIX = "api.github.com/repos"
WEB_PREFIX = "github.com"


def get_subject_url(subject: Subject) -> Optional[str]:
    """Resolve the web URL a user lands on when opening a subject.

    Only issues and pull requests can be mapped; other subject types
    (releases, check suites, discussions) have no stable web target.

    Args:
        subject: Notification subject

    Returns:
        Web URL, or None when the subject has no click target
    """
    if not subject.url:
        return None

    if subject.type == SubjectType.PULL_REQUEST:
        return subject.url.replace(API_REPOS_PREFIX, WEB_PREFIX).replace(
            "/pulls/", "/pull/"
        )
    if subject.type == SubjectType.ISSUE:
        return subject.url.replace(API_REPOS_PREFIX, WEB_PREFIX)
    return None
