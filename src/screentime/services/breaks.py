"""Policies deciding when a mandatory break is due."""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from screentime.domain.models import BreakRule, Session


class BreakPolicy(Protocol):
    """Decides whether a session must pause for a child's break rule."""

    def needs_break(self, session: Session, rule: BreakRule, now: datetime) -> bool:
        """Return True if a break must start now."""


@dataclass
class ContinuousUseBreakPolicy(BreakPolicy):
    """Break after `after_minutes` of use since the last break.

    Use is measured from the last break start, or from the session start
    when no break has happened yet.
    """

    def needs_break(self, session: Session, rule: BreakRule, now: datetime) -> bool:
        since = session.last_break_at or session.start_time
        minutes_since = int((now - since).total_seconds() // 60)
        return minutes_since >= rule.after_minutes
