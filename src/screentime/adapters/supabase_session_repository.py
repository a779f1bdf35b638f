"""Supabase-backed store for sessions, children and daily usage."""

from dataclasses import dataclass
from datetime import UTC, date, datetime

from supabase import Client

from screentime.domain.models import (
    OPEN_STATUSES,
    BreakRule,
    Child,
    Session,
    SessionStatus,
)
from screentime.services.scheduler import SessionStore

_SESSION_COLUMNS = (
    "id, device_id, child_ids, start_time, expected_duration_minutes, status, "
    "remaining_minutes, last_break_at, break_ends_at, warning_sent_at"
)
_CHILD_COLUMNS = (
    "id, name, weekday_limit, weekend_limit, break_after_minutes, "
    "break_duration_minutes, downtime_enabled"
)


@dataclass
class SupabaseSessionRepository(SessionStore):
    """Supabase implementation of the scheduler's store."""

    client: Client

    def list_open_sessions(self) -> list[Session]:
        """Return sessions in active or paused status."""
        response = (
            self.client.table("sessions")
            .select(_SESSION_COLUMNS)
            .in_("status", sorted(status.value for status in OPEN_STATUSES))
            .order("start_time", desc=False)
            .execute()
        )
        return [_parse_session(row) for row in response.data or []]

    def get_session(self, session_id: str) -> Session | None:
        """Return a session by id, if present."""
        response = (
            self.client.table("sessions")
            .select(_SESSION_COLUMNS)
            .eq("id", session_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_session(response.data[0])

    def update_session(self, session: Session) -> None:
        """Overwrite the mutable fields of a session row."""
        self.client.table("sessions").update(
            {
                "status": session.status.value,
                "remaining_minutes": session.remaining_minutes,
                "last_break_at": _iso(session.last_break_at),
                "break_ends_at": _iso(session.break_ends_at),
                "warning_sent_at": _iso(session.warning_sent_at),
                "updated_at": datetime.now(tz=UTC).isoformat(),
            }
        ).eq("id", session.id).execute()

    def get_child(self, child_id: str) -> Child | None:
        """Return a child by id, if present."""
        response = (
            self.client.table("children")
            .select(_CHILD_COLUMNS)
            .eq("id", child_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_child(response.data[0])

    def increment_daily_usage(self, child_id: str, day: date, minutes: int) -> None:
        """Add minutes and one session to the child's row for the date."""
        response = (
            self.client.table("daily_usage")
            .select("minutes_used, session_count")
            .eq("child_id", child_id)
            .eq("date", day.isoformat())
            .limit(1)
            .execute()
        )
        now = datetime.now(tz=UTC).isoformat()
        if not response.data:
            self.client.table("daily_usage").insert(
                {
                    "child_id": child_id,
                    "date": day.isoformat(),
                    "minutes_used": minutes,
                    "session_count": 1,
                    "updated_at": now,
                }
            ).execute()
            return
        row = response.data[0]
        self.client.table("daily_usage").update(
            {
                "minutes_used": int(row.get("minutes_used") or 0) + minutes,
                "session_count": int(row.get("session_count") or 0) + 1,
                "updated_at": now,
            }
        ).eq("child_id", child_id).eq("date", day.isoformat()).execute()


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_datetime(value: object) -> datetime | None:
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value)
    return None


def _parse_session(row: dict[str, object]) -> Session:
    start_time = _parse_datetime(row.get("start_time"))
    if start_time is None:
        raise ValueError(f"session {row.get('id')} has no start_time")
    raw_child_ids = row.get("child_ids") or []
    child_ids = raw_child_ids if isinstance(raw_child_ids, list) else []
    return Session(
        id=str(row["id"]),
        device_id=str(row["device_id"]),
        child_ids=tuple(str(c) for c in child_ids),
        start_time=start_time,
        expected_duration_minutes=int(row["expected_duration_minutes"]),
        status=SessionStatus(row["status"]),
        remaining_minutes=int(row.get("remaining_minutes") or 0),
        last_break_at=_parse_datetime(row.get("last_break_at")),
        break_ends_at=_parse_datetime(row.get("break_ends_at")),
        warning_sent_at=_parse_datetime(row.get("warning_sent_at")),
    )


def _parse_child(row: dict[str, object]) -> Child:
    after = row.get("break_after_minutes")
    duration = row.get("break_duration_minutes")
    break_rule = (
        BreakRule(after_minutes=int(after), duration_minutes=int(duration))
        if isinstance(after, int) and isinstance(duration, int)
        else None
    )
    return Child(
        id=str(row["id"]),
        name=str(row.get("name", "")),
        weekday_limit=int(row.get("weekday_limit") or 0),
        weekend_limit=int(row.get("weekend_limit") or 0),
        break_rule=break_rule,
        downtime_enabled=bool(row.get("downtime_enabled", False)),
    )
