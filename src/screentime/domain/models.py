"""Domain models for children and sessions."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import StrEnum

from screentime.domain.errors import InvalidChildError, InvalidSessionError

SATURDAY = 5


def is_weekend(day: date) -> bool:
    """Return True for Saturday and Sunday."""
    return day.weekday() >= SATURDAY


class SessionStatus(StrEnum):
    """Lifecycle states of a screen-time session."""

    ACTIVE = "active"
    PAUSED = "paused"
    EXPIRED = "expired"


OPEN_STATUSES = frozenset({SessionStatus.ACTIVE, SessionStatus.PAUSED})


@dataclass(frozen=True)
class BreakRule:
    """Mandatory pause after a stretch of use."""

    after_minutes: int
    duration_minutes: int


@dataclass(frozen=True)
class Child:
    """A child with daily screen-time limits."""

    id: str
    name: str
    weekday_limit: int
    weekend_limit: int
    break_rule: BreakRule | None = None
    downtime_enabled: bool = False

    def validate(self) -> None:
        """Raise InvalidChildError if the record is inconsistent."""
        if not self.name:
            raise InvalidChildError("child name cannot be empty")
        if self.weekday_limit <= 0:
            raise InvalidChildError("weekday limit must be positive")
        if self.weekend_limit <= 0:
            raise InvalidChildError("weekend limit must be positive")
        if self.break_rule is not None and (
            self.break_rule.after_minutes <= 0 or self.break_rule.duration_minutes <= 0
        ):
            raise InvalidChildError("invalid break rule configuration")

    def daily_limit(self, day: date) -> int:
        """Return the limit in minutes that applies on the given day."""
        return self.weekend_limit if is_weekend(day) else self.weekday_limit


@dataclass(frozen=True)
class Session:
    """A bounded screen-time grant on one device for one or more children.

    `remaining_minutes` is a cache written by the scheduler; callers that need
    the real value use `remaining_minutes_at`.
    """

    id: str
    device_id: str
    child_ids: tuple[str, ...]
    start_time: datetime
    expected_duration_minutes: int
    status: SessionStatus = SessionStatus.ACTIVE
    remaining_minutes: int = 0
    last_break_at: datetime | None = None
    break_ends_at: datetime | None = None
    warning_sent_at: datetime | None = None

    def validate(self) -> None:
        """Raise InvalidSessionError if the record is inconsistent."""
        if not self.device_id:
            raise InvalidSessionError("device id cannot be empty")
        if not self.child_ids:
            raise InvalidSessionError("session must have at least one child")
        if self.expected_duration_minutes <= 0:
            raise InvalidSessionError("duration must be positive")

    @property
    def ends_at(self) -> datetime:
        """Instant at which the planned duration runs out."""
        return self.start_time + timedelta(minutes=self.expected_duration_minutes)

    def elapsed_minutes(self, now: datetime) -> int:
        """Whole minutes since the session started, never negative."""
        return max(0, int((now - self.start_time).total_seconds() // 60))

    def remaining_minutes_at(self, now: datetime) -> int:
        """Remaining minutes derived from start time, never negative."""
        return max(0, self.expected_duration_minutes - self.elapsed_minutes(now))

    def is_in_break(self, now: datetime) -> bool:
        """Return True while a mandatory break is running."""
        return self.break_ends_at is not None and now < self.break_ends_at
