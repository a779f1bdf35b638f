"""Shared test fixtures."""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from screentime.adapters.platform import Platform, PlatformError
from screentime.adapters.status_client import StatusClient, StatusQueryError
from screentime.config import Settings
from screentime.containers import AppContainer, build_registries
from screentime.domain.agent import EntitlementStatus
from screentime.domain.devices import Device, DeviceBypass
from screentime.domain.downtime import DaySchedule, DowntimeSchedule
from screentime.domain.models import OPEN_STATUSES, Child, Session
from screentime.services.devices import (
    DeviceDriver,
    DeviceRegistry,
    DriverRegistry,
    DriverResolver,
)
from screentime.services.downtime import DowntimeService, DowntimeSkipRepository
from screentime.services.scheduler import SessionScheduler, SessionStore
from screentime.services.status import BypassRepository, StatusService

# Monday
T0 = datetime(2024, 1, 15, 12, 0, tzinfo=UTC)


@dataclass
class FakeClock:
    """Manually advanced clock."""

    current: datetime = T0

    def now(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current += delta


@dataclass
class InMemorySessionStore(SessionStore):
    """In-memory session/child/usage store for tests."""

    sessions: dict[str, Session] = field(default_factory=dict)
    children: dict[str, Child] = field(default_factory=dict)
    usage: dict[tuple[str, date], tuple[int, int]] = field(default_factory=dict)
    updates: list[Session] = field(default_factory=list)
    fail_update_for: set[str] = field(default_factory=set)
    fail_usage_for: set[str] = field(default_factory=set)
    fail_list: bool = False

    def add_session(self, session: Session) -> Session:
        self.sessions[session.id] = session
        return session

    def add_child(self, child: Child) -> Child:
        self.children[child.id] = child
        return child

    def list_open_sessions(self) -> list[Session]:
        if self.fail_list:
            raise RuntimeError("database unavailable")
        return [
            s for s in self.sessions.values() if s.status in OPEN_STATUSES
        ]

    def get_session(self, session_id: str) -> Session | None:
        return self.sessions.get(session_id)

    def update_session(self, session: Session) -> None:
        if session.id in self.fail_update_for:
            raise RuntimeError("write failed")
        self.sessions[session.id] = session
        self.updates.append(session)

    def get_child(self, child_id: str) -> Child | None:
        return self.children.get(child_id)

    def increment_daily_usage(self, child_id: str, day: date, minutes: int) -> None:
        if child_id in self.fail_usage_for:
            raise RuntimeError("usage write failed")
        used, count = self.usage.get((child_id, day), (0, 0))
        self.usage[(child_id, day)] = (used + minutes, count + 1)


@dataclass
class FakeDriver(DeviceDriver):
    """Driver that records calls and can be told to fail."""

    name: str = "fake"
    warnings: list[tuple[str, int]] = field(default_factory=list)
    stops: list[str] = field(default_factory=list)
    fail_warning: bool = False
    fail_stop: bool = False

    async def stop_session(self, session: Session) -> None:
        self.stops.append(session.id)
        if self.fail_stop:
            raise RuntimeError("device unreachable")

    async def apply_warning(self, session: Session, minutes_remaining: int) -> None:
        self.warnings.append((session.id, minutes_remaining))
        if self.fail_warning:
            raise RuntimeError("device unreachable")


@dataclass
class InMemoryBypassRepository(BypassRepository):
    """In-memory device bypass storage."""

    bypasses: dict[str, DeviceBypass] = field(default_factory=dict)
    cleared: list[str] = field(default_factory=list)

    def get_device_bypass(self, device_id: str) -> DeviceBypass | None:
        return self.bypasses.get(device_id)

    def set_device_bypass(self, bypass: DeviceBypass) -> None:
        self.bypasses[bypass.device_id] = bypass

    def clear_device_bypass(self, device_id: str) -> None:
        self.bypasses.pop(device_id, None)
        self.cleared.append(device_id)


@dataclass
class InMemorySkipRepository(DowntimeSkipRepository):
    """In-memory downtime skip storage."""

    skip_date: date | None = None

    def get_skip_date(self) -> date | None:
        return self.skip_date

    def set_skip_date(self, day: date) -> None:
        self.skip_date = day


@dataclass
class FakeStatusClient(StatusClient):
    """Status client returning queued results; errors are raised."""

    results: list[EntitlementStatus | StatusQueryError] = field(default_factory=list)
    calls: list[str] = field(default_factory=list)

    async def get_session_status(self, device_id: str) -> EntitlementStatus:
        self.calls.append(device_id)
        result = self.results.pop(0)
        if isinstance(result, StatusQueryError):
            raise result
        return result


@dataclass
class FakePlatform(Platform):
    """Platform that records lock and warning calls."""

    locks: int = 0
    warnings: list[tuple[str, str]] = field(default_factory=list)
    fail_lock: bool = False
    fail_warning: bool = False

    def lock(self) -> None:
        if self.fail_lock:
            raise PlatformError("lock failed")
        self.locks += 1

    def show_warning(self, title: str, message: str) -> None:
        self.warnings.append((title, message))
        if self.fail_warning:
            raise PlatformError("notification failed")


def make_session(**overrides: object) -> Session:
    values: dict[str, object] = {
        "id": "s1",
        "device_id": "tv1",
        "child_ids": ("c1",),
        "start_time": T0,
        "expected_duration_minutes": 30,
    }
    values.update(overrides)
    return Session(**values)  # type: ignore[arg-type]


def make_child(**overrides: object) -> Child:
    values: dict[str, object] = {
        "id": "c1",
        "name": "Alice",
        "weekday_limit": 60,
        "weekend_limit": 120,
    }
    values.update(overrides)
    return Child(**values)  # type: ignore[arg-type]


def make_resolver(driver: DeviceDriver) -> DriverResolver:
    devices = DeviceRegistry()
    devices.register(Device(id="tv1", name="Living Room TV", type="tv", driver="fake"))
    drivers = DriverRegistry()
    drivers.register(driver)
    return DriverResolver(devices=devices, drivers=drivers)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
        agent_tokens="agent-token:pc1",
        admin_token="admin-secret",
        devices=[{"id": "pc1", "name": "Study PC", "type": "pc", "driver": "passive"}],
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def container(
    settings: Settings, store: InMemorySessionStore, clock: FakeClock
) -> AppContainer:
    device_registry, driver_registry = build_registries(settings)
    zone = ZoneInfo("UTC")
    return AppContainer(
        settings=settings,
        agent_tokens={"agent-token": "pc1"},
        device_registry=device_registry,
        driver_registry=driver_registry,
        downtime_service=DowntimeService(
            schedule=DowntimeSchedule(weekday=DaySchedule(22, 0, 7, 0)),
            zone=zone,
            skip_repository=InMemorySkipRepository(),
        ),
        scheduler=SessionScheduler(
            store=store,
            resolver=DriverResolver(devices=device_registry, drivers=driver_registry),
            zone=zone,
            clock=clock,
        ),
        status_service=StatusService(
            store=store, bypass_repository=InMemoryBypassRepository(), clock=clock
        ),
        clock=clock,
    )
