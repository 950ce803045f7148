import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from ghinbox.models.config import GitHubSettings
from ghinbox.services.providers.github import GitHubClient
from ghinbox.utils.exceptions import (
    NotFoundError,
    RateLimitError,
    RemoteSourceError,
    TransientFetchError,
    UnauthorizedError,
)
from ghinbox.utils.rate_limiter import RateLimiter

PR_URL = "https://api.github.com/repos/octo/repo/pulls/1"


def mock_response(status=200, json_data=None, headers=None, text=""):
    resp = AsyncMock()
    resp.status = status
    resp.json.return_value = json_data
    resp.text.return_value = text
    resp.headers = headers or {}
    return resp


def notification(event_id, reason="mention"):
    return {
        "id": event_id,
        "unread": True,
        "reason": reason,
        "updated_at": "2025-01-01T00:00:00Z",
        "subject": {"title": "Fix", "url": PR_URL, "type": "PullRequest"},
        "repository": {"name": "repo", "full_name": "octo/repo"},
        "url": f"https://api.github.com/notifications/threads/{event_id}",
    }


@pytest.fixture
def client():
    settings = GitHubSettings(token="test-token", page_size=2)
    return GitHubClient(
        settings, rate_limiter=RateLimiter(requests_per_minute=6000, burst_size=100)
    )


def test_requires_token():
    with pytest.raises(UnauthorizedError):
        GitHubClient(GitHubSettings())


def test_headers(client):
    assert client.headers["Authorization"] == "Bearer test-token"
    assert client.headers["Accept"] == "application/vnd.github.v3+json"


@pytest.mark.asyncio
async def test_get_current_user(client):
    with patch("aiohttp.ClientSession.request") as mock_request:
        mock_request.return_value.__aenter__.return_value = mock_response(
            json_data={"login": "octocat", "id": 1, "plan": {"name": "free"}}
        )

        user = await client.get_current_user()

        assert user.login == "octocat"
        method, url = mock_request.call_args.args
        assert method == "GET"
        assert url == "https://api.github.com/user"
    await client.close()


@pytest.mark.asyncio
async def test_unauthorized(client):
    with patch("aiohttp.ClientSession.request") as mock_request:
        mock_request.return_value.__aenter__.return_value = mock_response(status=401)

        with pytest.raises(UnauthorizedError):
            await client.get_current_user()
    await client.close()


@pytest.mark.asyncio
async def test_subject_not_found(client):
    with patch("aiohttp.ClientSession.request") as mock_request:
        mock_request.return_value.__aenter__.return_value = mock_response(status=404)

        with pytest.raises(NotFoundError):
            await client.get_subject_detail(PR_URL)

        # Absolute URLs are used as-is
        assert mock_request.call_args.args[1] == PR_URL
    await client.close()


@pytest.mark.asyncio
async def test_server_error_is_transient_and_not_retried(client):
    with patch("aiohttp.ClientSession.request") as mock_request:
        mock_request.return_value.__aenter__.return_value = mock_response(status=502)

        with pytest.raises(TransientFetchError) as exc_info:
            await client.get_subject_detail(PR_URL)

        assert exc_info.value.status == 502
        assert mock_request.call_count == 1
    await client.close()


@pytest.mark.asyncio
async def test_other_client_error(client):
    with patch("aiohttp.ClientSession.request") as mock_request:
        mock_request.return_value.__aenter__.return_value = mock_response(
            status=422, text="Validation Failed"
        )

        with pytest.raises(RemoteSourceError) as exc_info:
            await client.get_pull_request_detail(PR_URL)

        assert exc_info.value.status == 422
        assert not isinstance(exc_info.value, TransientFetchError)
    await client.close()


@pytest.mark.asyncio
async def test_timeout_is_transient(client):
    with patch("aiohttp.ClientSession.request") as mock_request:
        mock_request.side_effect = asyncio.TimeoutError()

        with pytest.raises(TransientFetchError):
            await client.get_subject_detail(PR_URL)
    await client.close()


@pytest.mark.asyncio
async def test_network_error_is_transient(client):
    with patch("aiohttp.ClientSession.request") as mock_request:
        mock_request.side_effect = aiohttp.ClientConnectionError("reset")

        with pytest.raises(TransientFetchError):
            await client.get_subject_detail(PR_URL)
    await client.close()


@pytest.mark.asyncio
async def test_rate_limit_retried_then_succeeds(client):
    with patch("aiohttp.ClientSession.request") as mock_request, patch(
        "asyncio.sleep", new=AsyncMock()
    ):
        mock_request.return_value.__aenter__.side_effect = [
            mock_response(status=429, headers={"Retry-After": "1"}),
            mock_response(status=429),
            mock_response(json_data={"state": "open"}),
        ]

        detail = await client.get_subject_detail(PR_URL)

        assert detail.state == "open"
        assert mock_request.call_count == 3
    await client.close()


@pytest.mark.asyncio
async def test_exhausted_rate_limit_header_gives_up_after_three_attempts(client):
    with patch("aiohttp.ClientSession.request") as mock_request, patch(
        "asyncio.sleep", new=AsyncMock()
    ):
        mock_request.return_value.__aenter__.return_value = mock_response(
            status=403, headers={"X-RateLimit-Remaining": "0"}
        )

        with pytest.raises(RateLimitError):
            await client.get_subject_detail(PR_URL)

        assert mock_request.call_count == 3
    await client.close()


@pytest.mark.asyncio
async def test_list_events_skips_invalid_and_counts_received(client):
    payload = [notification("1"), notification("2", reason="approval_requested")]
    since = datetime(2025, 1, 1, tzinfo=timezone.utc)

    with patch("aiohttp.ClientSession.request") as mock_request:
        mock_request.return_value.__aenter__.return_value = mock_response(
            json_data=payload
        )

        page = await client.list_events(page=3, page_size=2, since=since)

        assert [e.id for e in page.events] == ["1"]
        assert page.received == 2
        assert not page.is_last(2)

        params = mock_request.call_args.kwargs["params"]
        assert params["page"] == 3
        assert params["per_page"] == 2
        assert params["participating"] == "true"
        assert params["all"] == "false"
        assert params["since"] == "2025-01-01T00:00:00Z"
    await client.close()


@pytest.mark.asyncio
async def test_list_events_defaults_since_window(client):
    with patch("aiohttp.ClientSession.request") as mock_request:
        mock_request.return_value.__aenter__.return_value = mock_response(json_data=[])

        page = await client.list_events(page=1, page_size=2)

        assert page.events == []
        since = mock_request.call_args.kwargs["params"]["since"]
        parsed = datetime.strptime(since, "%Y-%m-%dT%H:%M:%SZ").replace(
            tzinfo=timezone.utc
        )
        age = datetime.now(timezone.utc) - parsed
        assert 29.9 < age.total_seconds() / 86400 < 30.1
    await client.close()


@pytest.mark.asyncio
async def test_get_user_teams_pages_until_short(client):
    full_page = [{"slug": f"t{i}", "name": f"T{i}"} for i in range(100)]
    with patch("aiohttp.ClientSession.request") as mock_request:
        mock_request.return_value.__aenter__.side_effect = [
            mock_response(json_data=full_page),
            mock_response(json_data=[{"slug": "last", "name": "Last"}]),
        ]

        teams = await client.get_user_teams()

        assert len(teams) == 101
        assert teams[-1].slug == "last"
        assert mock_request.call_count == 2
    await client.close()


@pytest.mark.asyncio
async def test_mark_read(client):
    with patch("aiohttp.ClientSession.request") as mock_request:
        mock_request.return_value.__aenter__.return_value = mock_response(status=205)

        assert await client.mark_read("99") is True

        method, url = mock_request.call_args.args
        assert method == "PATCH"
        assert url == "https://api.github.com/notifications/threads/99"
    await client.close()


@pytest.mark.asyncio
async def test_close_is_idempotent(client):
    client._get_session()
    await client.close()
    await client.close()

    assert client._session is None
