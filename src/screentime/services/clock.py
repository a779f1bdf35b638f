"""Clock abstraction and the fixed-interval loop shared by both enforcers."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

_logger = logging.getLogger(__name__)


class Clock(Protocol):
    """Source of the current instant."""

    def now(self) -> datetime:
        """Return the current timezone-aware time."""


@dataclass
class SystemClock(Clock):
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(tz=UTC)


async def run_periodic(
    step: Callable[[], Awaitable[None]],
    interval_seconds: float,
    stop_event: asyncio.Event,
    *,
    immediate: bool = False,
    name: str = "loop",
) -> None:
    """Run `step` every `interval_seconds` until `stop_event` is set.

    The interval is fixed. A step that is already running when the loop is
    stopped or cancelled is shielded and runs to completion.
    """
    if immediate and not stop_event.is_set():
        await _run_step(step, name)
    while not stop_event.is_set():
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except TimeoutError:
            await _run_step(step, name)
    _logger.info("%s stopped", name)


async def _run_step(step: Callable[[], Awaitable[None]], name: str) -> None:
    try:
        await asyncio.shield(step())
    except asyncio.CancelledError:
        raise
    except Exception:
        _logger.exception("%s step failed", name)
