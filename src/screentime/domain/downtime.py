"""Domain models for recurring downtime windows."""

from dataclasses import dataclass
from datetime import datetime

MINUTES_PER_HOUR = 60


@dataclass(frozen=True)
class DaySchedule:
    """Start and end time-of-day for one day type."""

    start_hour: int
    start_minute: int
    end_hour: int
    end_minute: int

    @property
    def start_minutes(self) -> int:
        return self.start_hour * MINUTES_PER_HOUR + self.start_minute

    @property
    def end_minutes(self) -> int:
        return self.end_hour * MINUTES_PER_HOUR + self.end_minute

    @property
    def wraps_midnight(self) -> bool:
        """True when the window ends on the following calendar day."""
        return self.start_minutes >= self.end_minutes


@dataclass(frozen=True)
class DowntimeSchedule:
    """Weekday (Mon-Fri) and weekend (Sat-Sun) downtime windows.

    A missing day type means downtime never applies on those days.
    """

    weekday: DaySchedule | None = None
    weekend: DaySchedule | None = None


@dataclass(frozen=True)
class DowntimeStatus:
    """Downtime state at one instant."""

    enabled: bool
    in_downtime: bool
    skipped_today: bool
    current_end: datetime | None
    next_start: datetime | None
