"""Edge enforcement loop: fail-closed polling of the authority."""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta

from screentime.adapters.platform import Platform
from screentime.adapters.status_client import (
    ForbiddenError,
    StatusClient,
    StatusQueryError,
    UnauthorizedError,
)
from screentime.domain.agent import EnforcerState, EntitlementStatus
from screentime.services.clock import Clock, SystemClock, run_periodic

_logger = logging.getLogger(__name__)

LOCK_DEBOUNCE = timedelta(seconds=5)
WARNING_TITLE = "Screen Time Warning"


@dataclass
class Enforcer:
    """Polls one device's entitlement and locks or warns locally.

    The agent never writes to the authority. Inside the grace period a
    failing poll is tolerated; after it the device is locked. Warnings run
    as detached tasks, so all state changes happen under `_lock`.
    """

    client: StatusClient
    platform: Platform
    device_id: str
    poll_interval_seconds: float
    grace_period: timedelta
    clock: Clock = field(default_factory=SystemClock)
    lock_debounce: timedelta = LOCK_DEBOUNCE
    _state: EnforcerState = field(default_factory=EnforcerState)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    _stop_event: asyncio.Event = field(default_factory=asyncio.Event)
    _warning_tasks: set[asyncio.Task[None]] = field(default_factory=set)

    async def run(self) -> None:
        """Poll immediately, then at a fixed interval until stopped."""
        _logger.info(
            "Starting enforcement loop: device_id=%s poll_interval=%ss grace=%s",
            self.device_id,
            self.poll_interval_seconds,
            self.grace_period,
        )
        await run_periodic(
            self.poll,
            self.poll_interval_seconds,
            self._stop_event,
            immediate=True,
            name="enforcer",
        )
        await self.wait_for_warnings()

    def stop(self) -> None:
        """Ask the loop to exit after any in-flight poll."""
        self._stop_event.set()

    def get_state(self) -> EnforcerState:
        """Return a snapshot of the enforcement state."""
        return self._state

    async def poll(self) -> None:
        """Run one poll and react to its outcome."""
        try:
            status = await self.client.get_session_status(self.device_id)
        except StatusQueryError as exc:
            await self._handle_poll_failure(exc)
            return
        await self._handle_status(status)

    async def wait_for_warnings(self) -> None:
        """Wait for detached warning deliveries to finish."""
        if self._warning_tasks:
            await asyncio.gather(*self._warning_tasks, return_exceptions=True)

    async def _handle_status(self, status: EntitlementStatus) -> None:
        async with self._lock:
            now = self.clock.now()
            self._state = replace(
                self._state, last_successful_poll=now, network_error_since=None
            )

            if status.bypass_mode:
                _logger.debug("Bypass mode active, skipping enforcement")
                return

            if not status.active:
                _logger.info("No active session, locking workstation")
                await self._try_lock(now)
                return

            if status.session_id != self._state.last_session_id:
                _logger.info(
                    "New session detected: session_id=%s ends_at=%s",
                    status.session_id,
                    status.ends_at,
                )
                self._state = replace(
                    self._state, last_session_id=status.session_id, warning_sent=False
                )

            if status.ends_at is not None and now >= status.ends_at:
                _logger.info(
                    "Session %s expired at %s, locking workstation",
                    status.session_id,
                    status.ends_at,
                )
                await self._try_lock(now)
                return

            if (
                status.warn_at is not None
                and now >= status.warn_at
                and not self._state.warning_sent
            ):
                minutes = _minutes_until(status.ends_at, now)
                _logger.info(
                    "Warning threshold reached: session_id=%s remaining=%s min",
                    status.session_id,
                    minutes,
                )
                self._dispatch_warning(minutes)
                self._state = replace(self._state, warning_sent=True)

    async def _handle_poll_failure(self, exc: StatusQueryError) -> None:
        if isinstance(exc, UnauthorizedError | ForbiddenError):
            _logger.error("Status request rejected: %s", exc)
        else:
            _logger.warning("Network error polling session status: %s", exc)

        async with self._lock:
            now = self.clock.now()
            if self._state.network_error_since is None:
                self._state = replace(self._state, network_error_since=now)
            error_since = self._state.network_error_since or now
            error_duration = now - error_since
            last_success = self._state.last_successful_poll
            if (
                error_duration < self.grace_period
                and last_success is not None
                and now - last_success < self.grace_period
            ):
                _logger.debug(
                    "Within grace period: error_duration=%s since_last_success=%s",
                    error_duration,
                    now - last_success,
                )
                return

            _logger.warning(
                "Grace period exceeded, locking workstation: error_duration=%s",
                error_duration,
            )
            await self._try_lock(now)

    async def _try_lock(self, now: datetime) -> None:
        last_lock = self._state.last_lock_time
        if last_lock is not None and now - last_lock < self.lock_debounce:
            _logger.debug("Lock debounced: since_last=%s", now - last_lock)
            return
        try:
            await asyncio.to_thread(self.platform.lock)
        except Exception:
            _logger.exception("Failed to lock workstation")
            return
        self._state = replace(self._state, last_lock_time=now)

    def _dispatch_warning(self, minutes_remaining: int) -> None:
        task = asyncio.create_task(self._deliver_warning(minutes_remaining))
        self._warning_tasks.add(task)
        task.add_done_callback(self._warning_tasks.discard)

    async def _deliver_warning(self, minutes_remaining: int) -> None:
        message = (
            "Less than 1 minute remaining!"
            if minutes_remaining <= 1
            else f"{minutes_remaining} minutes remaining"
        )
        try:
            await asyncio.to_thread(self.platform.show_warning, WARNING_TITLE, message)
        except Exception:
            _logger.exception("Failed to show warning notification")


def _minutes_until(ends_at: datetime | None, now: datetime) -> int:
    if ends_at is None:
        return 0
    return int(max(timedelta(0), ends_at - now).total_seconds() // 60)
