"""Exception hierarchy for the notification inbox.

This module defines the errors raised while talking to the remote
notification source and while running a refresh cycle:
- Base exception for everything the inbox raises
- Remote failures split by how the caller must react (auth, missing, transient)

All exceptions inherit from InboxError so a collaborator can catch every
inbox-related failure in a single except block when needed.
"""


class InboxError(Exception):
    """Base exception for all inbox errors

    Use this to catch any error raised by the inbox core:
    ```python
    try:
        await session.refresh()
    except InboxError as e:
        logger.error("refresh_failed", error=str(e))
    ```
    """

    pass


class RemoteSourceError(InboxError):
    """Remote source request failed

    Raised when:
    - API returns an unexpected 4xx status
    - Response body cannot be decoded

    Carries the HTTP status when one was received.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class UnauthorizedError(RemoteSourceError):
    """Credentials are invalid or expired (401)

    The only remote failure that terminates a refresh cycle early. The
    session clears the local identity after a short grace period.
    """

    def __init__(self, message: str = "UNAUTHORIZED") -> None:
        super().__init__(message, status=401)


class NotFoundError(RemoteSourceError):
    """Referenced subject no longer exists (404)

    Callers cache the subject as ``deleted`` and suppress it silently.
    """

    def __init__(self, message: str = "Not Found") -> None:
        super().__init__(message, status=404)


class TransientFetchError(RemoteSourceError):
    """Transient failure (timeouts, 5xx, connection errors).

    Callers cache the subject as ``unknown`` and retry once the cache
    entry expires.
    """

    pass


class RateLimitError(TransientFetchError):
    """Rate limit exceeded with optional retry-after metadata.

    Raised when:
    - API returns 429 status
    - API returns 403 with an exhausted X-RateLimit-Remaining header
    """

    def __init__(
        self,
        message: str,
        status: int | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message, status=status)
        self.retry_after = retry_after
