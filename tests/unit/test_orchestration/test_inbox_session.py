"""Tests for the inbox session refresh actor."""

import asyncio

import pytest
import pytest_asyncio

from ghinbox.models.config import AppConfig
from ghinbox.orchestration.result import (
    STATUS_DISCARDED,
    STATUS_FAILED,
    STATUS_INACTIVE,
    STATUS_SUCCESS,
    STATUS_UNAUTHORIZED,
)
from ghinbox.orchestration.session import (
    REFRESH_JOB_ID,
    UNAUTHORIZED_MESSAGE,
    InboxSession,
)
from ghinbox.utils.exceptions import TransientFetchError, UnauthorizedError


@pytest.fixture
def config():
    return AppConfig(
        github={"token": "t", "page_size": 10},
        refresh={"unauthorized_grace_seconds": 0},
    )


@pytest.fixture
def sink():
    return []


@pytest_asyncio.fixture
async def session(config, source, storage, clock, sink):
    s = InboxSession(config, source, storage, alert_sink=sink.append, clock=clock)
    yield s
    s.scheduler.shutdown()


class TestStart:
    @pytest.mark.asyncio
    async def test_first_cycle_primes_without_alerting(self, session, source, sink, make_event):
        source.pages = {1: [make_event("1", reason="mention")]}

        result = await session.start(schedule=False)

        assert result.status == STATUS_SUCCESS
        assert result.groups == 1
        assert sink == []
        assert session.identity.login == "octocat"
        assert session.alerts.has_alerted(session.groups[0].key)

    @pytest.mark.asyncio
    async def test_user_teams_cached_per_login(self, session, source, storage, clock, config):
        await session.start(schedule=False)

        other = InboxSession(config, source, storage, clock=clock)
        await other.start(schedule=False)

        assert len(source.calls["teams"]) == 1
        assert other.user_teams == []

    @pytest.mark.asyncio
    async def test_user_teams_failure_is_not_fatal(self, session, source):
        async def broken_teams():
            raise TransientFetchError("teams down", status=502)

        source.get_user_teams = broken_teams

        result = await session.start(schedule=False)

        assert result.ok
        assert session.user_teams is None

    @pytest.mark.asyncio
    async def test_schedules_periodic_refresh(self, session):
        await session.start()

        assert session.scheduler.is_running
        assert session.scheduler.has_job(REFRESH_JOB_ID)

    @pytest.mark.asyncio
    async def test_unauthorized_identity(self, session, source):
        source.user_error = UnauthorizedError()

        result = await session.start(schedule=False)

        assert result.status == STATUS_UNAUTHORIZED
        assert session.error == UNAUTHORIZED_MESSAGE
        assert not session.scheduler.has_job(REFRESH_JOB_ID)

        await session._grace_task
        assert not session.active

    @pytest.mark.asyncio
    async def test_cycle_before_start_is_inactive(self, session):
        assert (await session.refresh()).status == STATUS_INACTIVE


class TestAlerts:
    @pytest.mark.asyncio
    async def test_new_mention_alerts_exactly_once(self, session, source, sink, make_event):
        old = make_event("1", reason="mention", number=1)
        source.pages = {1: [old]}
        await session.start(schedule=False)

        source.pages = {1: [make_event("2", reason="mention", number=2, title="Ping"), old]}
        result = await session.refresh()

        assert [a.title for a in result.alerts] == ["[Mention] Ping"]
        assert [a.title for a in sink] == ["[Mention] Ping"]

        again = await session.refresh()
        assert again.alerts == []
        assert len(sink) == 1

    @pytest.mark.asyncio
    async def test_new_event_on_prominent_group_realerts(self, session, source, sink, make_event):
        first = make_event("1", reason="mention", number=1)
        source.pages = {1: [first]}
        await session.start(schedule=False)

        source.pages = {1: [make_event("3", reason="comment", number=1), first]}
        await session.refresh()

        assert len(sink) == 1

    @pytest.mark.asyncio
    async def test_non_prominent_activity_never_alerts(self, session, source, sink, make_event):
        await session.start(schedule=False)

        source.pages = {1: [make_event("1", reason="subscribed")]}
        await session.refresh()

        assert sink == []

    @pytest.mark.asyncio
    async def test_load_more_never_alerts(self, storage, source, clock, sink, make_event):
        config = AppConfig(github={"token": "t", "page_size": 1, "max_pages": 5})
        session = InboxSession(config, source, storage, alert_sink=sink.append, clock=clock)
        source.pages = {
            1: [make_event("1", reason="subscribed", number=1)],
            2: [make_event("2", reason="mention", number=2)],
        }
        await session.start(schedule=False)

        more = await session.load_more()
        refreshed = await session.refresh()

        assert more.groups == 2
        assert more.alerts == []
        assert refreshed.pages == 2
        assert refreshed.alerts == []
        assert sink == []

    @pytest.mark.asyncio
    async def test_failing_sink_does_not_fail_cycle(self, storage, source, clock, config, make_event):
        def broken_sink(alert):
            raise RuntimeError("no display")

        session = InboxSession(config, source, storage, alert_sink=broken_sink, clock=clock)
        await session.start(schedule=False)
        source.pages = {1: [make_event("1", reason="mention")]}

        result = await session.refresh()

        assert result.ok
        assert len(result.alerts) == 1


class TestFailures:
    @pytest.mark.asyncio
    async def test_transient_failure_keeps_previous_groups(self, session, source, make_event):
        source.pages = {1: [make_event("1", reason="mention")]}
        await session.start(schedule=False)

        source.list_error = TransientFetchError("boom", status=503)
        result = await session.refresh()

        assert result.status == STATUS_FAILED
        assert session.error == "boom"
        assert len(session.groups) == 1

        source.list_error = None
        await session.refresh()
        assert session.error is None

    @pytest.mark.asyncio
    async def test_unauthorized_refresh_logs_out_after_grace(self, session, source, make_event):
        logged_out = []
        session.on_logout = lambda: logged_out.append(True)
        source.pages = {1: [make_event("1", reason="mention")]}
        await session.start(schedule=False)

        source.list_error = UnauthorizedError()
        result = await session.refresh()

        assert result.status == STATUS_UNAUTHORIZED
        assert session.error == UNAUTHORIZED_MESSAGE
        assert session.identity is not None

        await session._grace_task

        assert logged_out == [True]
        assert session.identity is None
        assert session.groups == []
        assert source.closed

    @pytest.mark.asyncio
    async def test_unauthorized_while_scheduled_uses_one_shot_job(self, session, source):
        await session.start()

        source.list_error = UnauthorizedError()
        await session.refresh()

        for _ in range(100):
            if not session.active:
                break
            await asyncio.sleep(0.01)

        assert not session.active
        assert not session.scheduler.is_running


class TestLogout:
    @pytest.mark.asyncio
    async def test_logout_discards_in_flight_cycle(self, session, source, make_event):
        source.pages = {1: [make_event("1", reason="mention")]}
        await session.start(schedule=False)

        gate = asyncio.Event()
        entered = asyncio.Event()
        original = source.list_events

        async def gated_list_events(page, page_size, since=None):
            entered.set()
            await gate.wait()
            return await original(page, page_size, since)

        source.list_events = gated_list_events
        in_flight = asyncio.create_task(session.refresh())
        await entered.wait()

        await session.logout()
        gate.set()
        result = await in_flight

        assert result.status == STATUS_DISCARDED
        assert session.groups == []
        assert session.identity is None

    @pytest.mark.asyncio
    async def test_logout_stops_scheduler_and_closes_source(self, session, source):
        await session.start()

        await session.logout()

        assert not session.scheduler.is_running
        assert not session.scheduler.has_job(REFRESH_JOB_ID)
        assert source.closed
        assert (await session.refresh()).status == STATUS_INACTIVE

    @pytest.mark.asyncio
    async def test_async_logout_callback_awaited(self, session):
        called = []

        async def on_logout():
            called.append(True)

        session.on_logout = on_logout
        await session.start(schedule=False)
        await session.logout()

        assert called == [True]


class TestUserActions:
    @pytest.mark.asyncio
    async def test_dismiss_hides_group_across_refreshes(self, session, source, make_event):
        source.pages = {
            1: [make_event("1", reason="mention", number=1), make_event("2", number=2)]
        }
        await session.start(schedule=False)
        key = source.pages[1][0].group_key

        assert session.dismiss(key) is True
        assert session.find_group(key) is None

        result = await session.refresh()
        assert result.groups == 1
        assert result.dismissed_hidden == 1
        assert session.find_group(key) is None

    @pytest.mark.asyncio
    async def test_mark_read_acknowledges_every_event(self, session, source, make_event):
        source.pages = {
            1: [make_event("1", number=1), make_event("2", reason="comment", number=1)]
        }
        await session.start(schedule=False)
        key = source.pages[1][0].group_key

        acknowledged = await session.mark_read(key)

        assert acknowledged == 2
        assert source.calls["mark_read"] == ["1", "2"]
        assert session.find_group(key) is None

    @pytest.mark.asyncio
    async def test_mark_read_unknown_group(self, session):
        await session.start(schedule=False)

        assert await session.mark_read("nope#") == 0

    @pytest.mark.asyncio
    async def test_visited(self, session):
        session.mark_visited("octo/repo#x")

        assert session.is_visited("octo/repo#x")
        assert not session.is_visited("octo/repo#y")
