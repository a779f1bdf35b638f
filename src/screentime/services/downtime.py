"""Recurring downtime window calculations."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo

from screentime.domain.downtime import DaySchedule, DowntimeSchedule, DowntimeStatus
from screentime.domain.models import Child, is_weekend

_logger = logging.getLogger(__name__)

DAYS_PER_WEEK = 7


class DowntimeSkipRepository(Protocol):
    """Persistence interface for the "skip downtime today" override."""

    def get_skip_date(self) -> date | None:
        """Return the local date downtime is skipped on, if any."""

    def set_skip_date(self, day: date) -> None:
        """Skip downtime for the given local date."""


@dataclass
class DowntimeService:
    """Evaluates a weekday/weekend downtime schedule in a fixed time zone.

    All instants are converted to `zone` before day-type selection, so the
    weekday/weekend switch happens exactly at local midnight.
    """

    schedule: DowntimeSchedule | None
    zone: ZoneInfo
    skip_repository: DowntimeSkipRepository | None = None

    def is_enabled(self) -> bool:
        """Return True if at least one day type has a window."""
        return self.schedule is not None and (
            self.schedule.weekday is not None or self.schedule.weekend is not None
        )

    def is_in_downtime(self, moment: datetime) -> bool:
        """Return True if `moment` falls inside the window for its day type.

        Start is inclusive, end is exclusive. Windows whose start is not
        before their end wrap past midnight.
        """
        local = moment.astimezone(self.zone)
        window = self._window_for(local.date())
        if window is None:
            return False
        if self.is_skipped_today(moment):
            return False
        current = local.hour * 60 + local.minute
        if window.wraps_midnight:
            return current >= window.start_minutes or current < window.end_minutes
        return window.start_minutes <= current < window.end_minutes

    def is_child_in_downtime(self, child: Child, moment: datetime) -> bool:
        """Return True if downtime applies to this child at `moment`."""
        if not child.downtime_enabled:
            return False
        return self.is_in_downtime(moment)

    def current_downtime_end(self, moment: datetime) -> datetime | None:
        """Return when the running downtime window ends, or None."""
        if not self.is_in_downtime(moment):
            return None
        local = moment.astimezone(self.zone)
        window = self._window_for(local.date())
        if window is None:
            return None
        end_day = local.date()
        current = local.hour * 60 + local.minute
        if window.wraps_midnight and current >= window.end_minutes:
            end_day += timedelta(days=1)
        return self._at(end_day, window.end_hour, window.end_minute)

    def next_downtime_start(self, moment: datetime) -> datetime | None:
        """Return the next window start strictly after `moment`.

        While a window is running this is the following occurrence, never
        `moment` itself. Returns None when no day type has a window.
        """
        if not self.is_enabled():
            return None
        local = moment.astimezone(self.zone)
        for offset in range(DAYS_PER_WEEK + 1):
            day = local.date() + timedelta(days=offset)
            window = self._window_for(day)
            if window is None:
                continue
            start = self._at(day, window.start_hour, window.start_minute)
            if local < start:
                return start
        return None

    def describe(self, moment: datetime) -> DowntimeStatus:
        """Summarise the downtime state at `moment`."""
        return DowntimeStatus(
            enabled=self.is_enabled(),
            in_downtime=self.is_in_downtime(moment),
            skipped_today=self.is_skipped_today(moment),
            current_end=self.current_downtime_end(moment),
            next_start=self.next_downtime_start(moment),
        )

    def is_skipped_today(self, moment: datetime) -> bool:
        """Return True if downtime was skipped for the local date of `moment`."""
        if self.skip_repository is None:
            return False
        try:
            skip_date = self.skip_repository.get_skip_date()
        except Exception:
            _logger.warning("Failed to read downtime skip date", exc_info=True)
            return False
        return skip_date == moment.astimezone(self.zone).date()

    def skip_today(self, moment: datetime) -> None:
        """Disable downtime for the rest of the local date of `moment`."""
        if self.skip_repository is None:
            raise RuntimeError("Downtime skipping is not configured")
        self.skip_repository.set_skip_date(moment.astimezone(self.zone).date())

    def _window_for(self, day: date) -> DaySchedule | None:
        if self.schedule is None:
            return None
        return self.schedule.weekend if is_weekend(day) else self.schedule.weekday

    def _at(self, day: date, hour: int, minute: int) -> datetime:
        return datetime.combine(day, time(hour, minute), tzinfo=self.zone)
