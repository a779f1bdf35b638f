import asyncio
from datetime import timedelta

import httpx

from screentime.adapters.status_client import (
    HttpxStatusClient,
    StatusQueryError,
    UnauthorizedError,
)
from screentime.domain.agent import EntitlementStatus
from screentime.services.enforcer import WARNING_TITLE, Enforcer
from tests.conftest import T0, FakeClock, FakePlatform, FakeStatusClient


def _enforcer(
    client: FakeStatusClient,
    platform: FakePlatform,
    clock: FakeClock,
    grace_seconds: int = 30,
) -> Enforcer:
    return Enforcer(
        client=client,
        platform=platform,
        device_id="pc1",
        poll_interval_seconds=15,
        grace_period=timedelta(seconds=grace_seconds),
        clock=clock,
    )


def _inactive() -> EntitlementStatus:
    return EntitlementStatus(active=False, server_time=T0)


def _active(
    session_id: str = "s1", ends_in: timedelta = timedelta(minutes=30)
) -> EntitlementStatus:
    ends_at = T0 + ends_in
    return EntitlementStatus(
        active=True,
        server_time=T0,
        session_id=session_id,
        ends_at=ends_at,
        warn_at=ends_at - timedelta(minutes=5),
    )


def test_no_session_locks_and_debounces(clock: FakeClock) -> None:
    client = FakeStatusClient(results=[_inactive(), _inactive(), _inactive()])
    platform = FakePlatform()
    enforcer = _enforcer(client, platform, clock)

    async def scenario() -> None:
        await enforcer.poll()
        clock.advance(timedelta(seconds=2))
        await enforcer.poll()
        assert platform.locks == 1
        clock.advance(timedelta(seconds=4))
        await enforcer.poll()

    asyncio.run(scenario())

    assert platform.locks == 2
    assert client.calls == ["pc1", "pc1", "pc1"]


def test_failed_lock_is_not_debounced(clock: FakeClock) -> None:
    client = FakeStatusClient(results=[_inactive(), _inactive()])
    platform = FakePlatform(fail_lock=True)
    enforcer = _enforcer(client, platform, clock)

    async def scenario() -> None:
        await enforcer.poll()
        platform.fail_lock = False
        clock.advance(timedelta(seconds=1))
        await enforcer.poll()

    asyncio.run(scenario())

    assert platform.locks == 1
    assert enforcer.get_state().last_lock_time == T0 + timedelta(seconds=1)


def test_network_errors_tolerated_within_grace(clock: FakeClock) -> None:
    client = FakeStatusClient(
        results=[
            _active(),
            StatusQueryError("connection refused"),
            StatusQueryError("connection refused"),
            StatusQueryError("connection refused"),
        ]
    )
    platform = FakePlatform()
    enforcer = _enforcer(client, platform, clock, grace_seconds=60)

    async def scenario() -> None:
        await enforcer.poll()
        clock.advance(timedelta(seconds=1))
        await enforcer.poll()
        state = enforcer.get_state()
        assert state.network_error_since == T0 + timedelta(seconds=1)
        clock.advance(timedelta(seconds=29))
        await enforcer.poll()
        assert platform.locks == 0
        clock.advance(timedelta(seconds=31))
        await enforcer.poll()

    asyncio.run(scenario())

    assert platform.locks == 1
    assert enforcer.get_state().network_error_since == T0 + timedelta(seconds=1)


def test_successful_poll_clears_network_error(clock: FakeClock) -> None:
    client = FakeStatusClient(
        results=[_active(), StatusQueryError("timeout"), _active()]
    )
    enforcer = _enforcer(client, FakePlatform(), clock)

    async def scenario() -> None:
        await enforcer.poll()
        clock.advance(timedelta(seconds=5))
        await enforcer.poll()
        clock.advance(timedelta(seconds=5))
        await enforcer.poll()

    asyncio.run(scenario())

    state = enforcer.get_state()
    assert state.network_error_since is None
    assert state.last_successful_poll == T0 + timedelta(seconds=10)


def test_error_without_prior_success_locks(clock: FakeClock) -> None:
    client = FakeStatusClient(results=[UnauthorizedError("bad token")])
    platform = FakePlatform()
    enforcer = _enforcer(client, platform, clock)

    asyncio.run(enforcer.poll())

    assert platform.locks == 1


def test_bypass_mode_skips_enforcement(clock: FakeClock) -> None:
    bypass = EntitlementStatus(active=False, server_time=T0, bypass_mode=True)
    client = FakeStatusClient(results=[bypass])
    platform = FakePlatform()
    enforcer = _enforcer(client, platform, clock)

    asyncio.run(enforcer.poll())

    assert platform.locks == 0
    assert enforcer.get_state().last_successful_poll == T0


def test_expired_session_locks(clock: FakeClock) -> None:
    client = FakeStatusClient(results=[_active(ends_in=timedelta(0))])
    platform = FakePlatform()
    enforcer = _enforcer(client, platform, clock)

    asyncio.run(enforcer.poll())

    assert platform.locks == 1


def test_warning_shown_once_per_session(clock: FakeClock) -> None:
    client = FakeStatusClient(
        results=[
            _active(ends_in=timedelta(minutes=4)),
            _active(ends_in=timedelta(minutes=4)),
            _active(session_id="s2", ends_in=timedelta(minutes=4)),
        ]
    )
    platform = FakePlatform()
    enforcer = _enforcer(client, platform, clock)

    async def scenario() -> None:
        await enforcer.poll()
        await enforcer.poll()
        await enforcer.wait_for_warnings()
        assert len(platform.warnings) == 1
        await enforcer.poll()
        await enforcer.wait_for_warnings()

    asyncio.run(scenario())

    assert platform.warnings == [
        (WARNING_TITLE, "4 minutes remaining"),
        (WARNING_TITLE, "4 minutes remaining"),
    ]
    assert platform.locks == 0
    state = enforcer.get_state()
    assert state.last_session_id == "s2"
    assert state.warning_sent is True


def test_last_minute_warning_message(clock: FakeClock) -> None:
    client = FakeStatusClient(results=[_active(ends_in=timedelta(seconds=50))])
    platform = FakePlatform()
    enforcer = _enforcer(client, platform, clock)

    async def scenario() -> None:
        await enforcer.poll()
        await enforcer.wait_for_warnings()

    asyncio.run(scenario())

    assert platform.warnings == [(WARNING_TITLE, "Less than 1 minute remaining!")]


def test_failed_warning_is_not_repeated(clock: FakeClock) -> None:
    client = FakeStatusClient(
        results=[_active(ends_in=timedelta(minutes=3))] * 2,
    )
    platform = FakePlatform(fail_warning=True)
    enforcer = _enforcer(client, platform, clock)

    async def scenario() -> None:
        await enforcer.poll()
        await enforcer.wait_for_warnings()
        await enforcer.poll()
        await enforcer.wait_for_warnings()

    asyncio.run(scenario())

    assert len(platform.warnings) == 1


def test_run_polls_immediately_until_stopped(clock: FakeClock) -> None:
    client = FakeStatusClient(results=[_active()] * 50)
    enforcer = _enforcer(client, FakePlatform(), clock)
    enforcer.poll_interval_seconds = 0.01

    async def scenario() -> None:
        task = asyncio.create_task(enforcer.run())
        await asyncio.sleep(0.05)
        enforcer.stop()
        await asyncio.wait_for(task, timeout=1)

    asyncio.run(scenario())

    assert client.calls
    assert enforcer.get_state().last_session_id == "s1"


def test_offsetless_timestamps_fail_closed_after_grace(clock: FakeClock) -> None:
    bodies = [
        {
            "active": True,
            "session_id": "s1",
            "ends_at": "2024-01-15T12:30:00Z",
            "server_time": "2024-01-15T12:00:00Z",
        },
        {
            "active": True,
            "session_id": "s1",
            "ends_at": "2024-01-15T11:00:00",
            "server_time": "2024-01-15T12:00:00Z",
        },
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        body = bodies.pop(0) if len(bodies) > 1 else bodies[0]
        return httpx.Response(200, json=body)

    client = HttpxStatusClient(
        base_url="http://authority.local",
        token="agent-token",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    platform = FakePlatform()
    enforcer = _enforcer(client, platform, clock)  # type: ignore[arg-type]

    async def scenario() -> None:
        await enforcer.poll()
        clock.advance(timedelta(seconds=10))
        await enforcer.poll()
        assert platform.locks == 0
        assert enforcer.get_state().network_error_since == T0 + timedelta(seconds=10)
        clock.advance(timedelta(seconds=50))
        await enforcer.poll()

    asyncio.run(scenario())

    assert platform.locks == 1
    assert enforcer.get_state().last_successful_poll == T0
