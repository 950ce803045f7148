import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import aiohttp
import structlog
from pydantic import ValidationError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from ghinbox.models.config import GitHubSettings
from ghinbox.models.events import (
    EventPage,
    Identity,
    PullRequestDetail,
    RawEvent,
    SubjectDetail,
    Team,
)
from ghinbox.observability.metrics import REMOTE_REQUESTS
from ghinbox.services.providers.base import NotificationSource
from ghinbox.utils.exceptions import (
    NotFoundError,
    RateLimitError,
    RemoteSourceError,
    TransientFetchError,
    UnauthorizedError,
)
from ghinbox.utils.rate_limiter import RateLimiter

logger = structlog.get_logger()

TEAMS_PAGE_SIZE = 100


class GitHubClient(NotificationSource):
    """Notification source backed by the GitHub REST v3 API"""

    def __init__(
        self,
        settings: GitHubSettings,
        token: Optional[str] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.settings = settings
        self.token = token or settings.token
        if not self.token:
            raise UnauthorizedError("No GitHub token configured")

        self.api_base = settings.api_base
        self.rate_limiter = rate_limiter or RateLimiter(
            requests_per_minute=settings.requests_per_minute
        )
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github.v3+json",
        }

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self.headers,
                timeout=aiohttp.ClientTimeout(total=self.settings.timeout_seconds),
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _url(self, path_or_url: str) -> str:
        if path_or_url.startswith("http"):
            return path_or_url
        return f"{self.api_base}/{path_or_url.lstrip('/')}"

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(RateLimitError),
        reraise=True,
    )
    async def _request(
        self,
        method: str,
        path_or_url: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Perform one API call and map failures onto the error taxonomy."""
        await self.rate_limiter.acquire(endpoint)
        url = self._url(path_or_url)

        try:
            session = self._get_session()
            async with session.request(method, url, params=params) as response:
                status = response.status
                REMOTE_REQUESTS.labels(endpoint=endpoint, status=str(status)).inc()

                if status == 401:
                    logger.warning("github_unauthorized", endpoint=endpoint)
                    raise UnauthorizedError()

                if status == 404:
                    raise NotFoundError(f"Not found: {url}")

                if status == 429 or (
                    status == 403
                    and response.headers.get("X-RateLimit-Remaining") == "0"
                ):
                    retry_after = response.headers.get("Retry-After")
                    raise RateLimitError(
                        "GitHub rate limit exceeded",
                        status=status,
                        retry_after=float(retry_after) if retry_after else None,
                    )

                if status >= 500:
                    raise TransientFetchError(f"Server error: {status}", status=status)

                if status >= 400:
                    text = await response.text()
                    logger.error(
                        "github_api_error", endpoint=endpoint, status=status, body=text
                    )
                    raise RemoteSourceError(
                        f"API request failed: {status}", status=status
                    )

                if status in (204, 205):
                    return None

                return await response.json()

        except asyncio.TimeoutError:
            REMOTE_REQUESTS.labels(endpoint=endpoint, status="timeout").inc()
            logger.warning("github_api_timeout", endpoint=endpoint, url=url)
            raise TransientFetchError("Request timed out")
        except aiohttp.ClientError as e:
            REMOTE_REQUESTS.labels(endpoint=endpoint, status="error").inc()
            logger.warning("github_api_network_error", endpoint=endpoint, error=str(e))
            raise TransientFetchError(f"Network error: {e}")

    async def get_current_user(self) -> Identity:
        data = await self._request("GET", "user", endpoint="user")
        return Identity.model_validate(data)

    async def list_events(
        self,
        page: int,
        page_size: int,
        since: Optional[datetime] = None,
    ) -> EventPage:
        if since is None:
            since = datetime.now(timezone.utc) - timedelta(
                days=self.settings.since_days
            )

        params = {
            "all": "true" if self.settings.include_read else "false",
            "participating": "true" if self.settings.participating else "false",
            "per_page": page_size,
            "page": page,
            "since": since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        }
        data = await self._request(
            "GET", "notifications", endpoint="notifications", params=params
        )
        items = data or []
        return EventPage(page=page, events=self._parse_events(items), received=len(items))

    def _parse_events(self, items: List[Dict[str, Any]]) -> List[RawEvent]:
        events = []
        for item in items:
            try:
                events.append(RawEvent.model_validate(item))
            except ValidationError as e:
                logger.warning(
                    "notification_skipped_invalid",
                    event_id=item.get("id") if isinstance(item, dict) else None,
                    reason=item.get("reason") if isinstance(item, dict) else None,
                    error_count=e.error_count(),
                )
        return events

    async def get_subject_detail(self, url: str) -> SubjectDetail:
        data = await self._request("GET", url, endpoint="subject")
        return SubjectDetail.model_validate(data or {})

    async def get_pull_request_detail(self, url: str) -> PullRequestDetail:
        data = await self._request("GET", url, endpoint="pull_request")
        return PullRequestDetail.model_validate(data or {})

    async def get_user_teams(self) -> List[Team]:
        teams: List[Team] = []
        page = 1
        while True:
            data = await self._request(
                "GET",
                "user/teams",
                endpoint="user_teams",
                params={"per_page": TEAMS_PAGE_SIZE, "page": page},
            )
            items = data or []
            for item in items:
                try:
                    teams.append(Team.model_validate(item))
                except ValidationError:
                    logger.warning("team_skipped_invalid", team=item)
            if len(items) < TEAMS_PAGE_SIZE:
                break
            page += 1

        logger.info("user_teams_fetched", count=len(teams))
        return teams

    async def mark_read(self, event_id: str) -> bool:
        await self._request(
            "PATCH", f"notifications/threads/{event_id}", endpoint="mark_read"
        )
        return True
