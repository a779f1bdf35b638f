"""Central session reconciliation loop."""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo

from screentime.domain.errors import ChildNotFoundError
from screentime.domain.models import Child, Session, SessionStatus
from screentime.services.breaks import BreakPolicy, ContinuousUseBreakPolicy
from screentime.services.clock import Clock, SystemClock, run_periodic
from screentime.services.devices import DriverResolver

_logger = logging.getLogger(__name__)

DEFAULT_WARNING_MINUTES = 5


class SessionStore(Protocol):
    """Persistence interface the scheduler reads and mutates."""

    def list_open_sessions(self) -> list[Session]:
        """Return all sessions in active or paused status."""

    def get_session(self, session_id: str) -> Session | None:
        """Return a session by id, if present."""

    def update_session(self, session: Session) -> None:
        """Overwrite the stored session record."""

    def get_child(self, child_id: str) -> Child | None:
        """Return a child by id, if present."""

    def increment_daily_usage(self, child_id: str, day: date, minutes: int) -> None:
        """Add minutes and one session to a child's usage for a date."""


@dataclass
class SessionScheduler:
    """Advances every open session once per tick.

    Per session, the first matching branch wins: break resume, break
    running, break start, expiry, remaining-time update with a one-off
    warning. A failure on one session is logged and the tick moves on.
    """

    store: SessionStore
    resolver: DriverResolver
    zone: ZoneInfo
    break_policy: BreakPolicy = field(default_factory=ContinuousUseBreakPolicy)
    clock: Clock = field(default_factory=SystemClock)
    interval_seconds: float = 60
    warning_minutes: int = DEFAULT_WARNING_MINUTES
    _stop_event: asyncio.Event = field(default_factory=asyncio.Event)

    async def run(self) -> None:
        """Tick at a fixed interval until `stop` is called."""
        _logger.info("Scheduler started: interval=%ss", self.interval_seconds)
        await run_periodic(
            self.tick, self.interval_seconds, self._stop_event, name="scheduler"
        )

    def stop(self) -> None:
        """Ask the loop to exit after any in-flight tick."""
        self._stop_event.set()

    async def tick(self) -> None:
        """Process every open session once."""
        now = self.clock.now()
        try:
            sessions = self.store.list_open_sessions()
        except Exception:
            _logger.exception("Failed to list open sessions")
            return
        for session in sessions:
            try:
                await self.process_session(session, now)
            except Exception:
                _logger.exception("Failed to process session %s", session.id)

    async def process_session(self, session: Session, now: datetime) -> Session:
        """Apply one reconciliation step and return the resulting record."""
        if session.status == SessionStatus.EXPIRED:
            return session

        if session.break_ends_at is not None:
            if now >= session.break_ends_at:
                resumed = replace(
                    session, break_ends_at=None, status=SessionStatus.ACTIVE
                )
                self.store.update_session(resumed)
                _logger.info("Session %s: break ended, resuming", session.id)
                return resumed
            return session

        if session.status == SessionStatus.PAUSED:
            # Paused without a break deadline; only an explicit resume reopens it.
            return session

        for child_id in session.child_ids:
            child = self.store.get_child(child_id)
            if child is None:
                raise ChildNotFoundError(f"child {child_id} not found")
            rule = child.break_rule
            if rule is not None and self.break_policy.needs_break(session, rule, now):
                return await self._start_break(session, child, now)

        elapsed = session.elapsed_minutes(now)
        expected_remaining = session.expected_duration_minutes - elapsed
        if expected_remaining <= 0:
            _logger.info("Session %s: time expired, stopping", session.id)
            return await self.end_session(session, now)

        updated = replace(session, remaining_minutes=expected_remaining)
        warning_due = expected_remaining <= self.warning_minutes
        if warning_due and session.warning_sent_at is None:
            driver = self.resolver.for_session(session)
            _logger.info(
                "Session %s: %s minutes remaining, sending warning",
                session.id,
                expected_remaining,
            )
            try:
                await driver.apply_warning(updated, expected_remaining)
            except Exception:
                _logger.warning(
                    "Session %s: warning delivery failed, will retry",
                    session.id,
                    exc_info=True,
                )
            else:
                updated = replace(updated, warning_sent_at=now)
        self.store.update_session(updated)
        return updated

    async def end_session(self, session: Session, now: datetime) -> Session:
        """Stop the device, mark the session expired and accrue usage."""
        driver = self.resolver.for_session(session)
        try:
            await driver.stop_session(session)
        except Exception:
            _logger.warning(
                "Error stopping session %s on device %s",
                session.id,
                session.device_id,
                exc_info=True,
            )

        elapsed = session.elapsed_minutes(now)
        expired = replace(session, status=SessionStatus.EXPIRED, remaining_minutes=0)
        self.store.update_session(expired)

        today = now.astimezone(self.zone).date()
        for child_id in session.child_ids:
            try:
                self.store.increment_daily_usage(child_id, today, elapsed)
            except Exception:
                _logger.exception(
                    "Error updating daily usage for child %s", child_id
                )
        _logger.info("Session %s ended after %s minutes", session.id, elapsed)
        return expired

    async def _start_break(
        self, session: Session, child: Child, now: datetime
    ) -> Session:
        rule = child.break_rule
        if rule is None:
            return session
        paused = replace(
            session,
            status=SessionStatus.PAUSED,
            last_break_at=now,
            break_ends_at=now + timedelta(minutes=rule.duration_minutes),
        )
        _logger.info(
            "Session %s: enforcing %s minute break for child %s",
            session.id,
            rule.duration_minutes,
            child.name,
        )
        try:
            driver = self.resolver.for_session(paused)
            await driver.apply_warning(paused, 0)
        except Exception:
            _logger.warning(
                "Session %s: break notification failed", session.id, exc_info=True
            )
        self.store.update_session(paused)
        return paused
