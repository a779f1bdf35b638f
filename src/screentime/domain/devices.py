"""Domain models for managed devices."""

from dataclasses import dataclass, field
from datetime import datetime

MAX_DEVICE_ID_LENGTH = 15


@dataclass(frozen=True)
class Device:
    """A controllable device and the driver that controls it."""

    id: str
    name: str
    type: str
    driver: str
    parameters: dict[str, object] = field(default_factory=dict)

    def parameter(self, key: str) -> object | None:
        return self.parameters.get(key)


@dataclass(frozen=True)
class DeviceBypass:
    """Temporary lift of enforcement for an agent-controlled device."""

    device_id: str
    enabled: bool
    enabled_at: datetime
    reason: str | None = None
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now > self.expires_at

    def is_active(self, now: datetime) -> bool:
        return self.enabled and not self.is_expired(now)
