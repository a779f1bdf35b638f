"""Domain models shared by the status projection and the edge agent."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class EntitlementStatus:
    """Authority's answer to "may this device be used right now"."""

    active: bool
    server_time: datetime
    bypass_mode: bool = False
    session_id: str | None = None
    ends_at: datetime | None = None
    warn_at: datetime | None = None


@dataclass(frozen=True)
class EnforcerState:
    """Snapshot of the agent's local enforcement state."""

    last_session_id: str | None = None
    warning_sent: bool = False
    last_lock_time: datetime | None = None
    last_successful_poll: datetime | None = None
    network_error_since: datetime | None = None
