"""Read-only status projection served to edge agents."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Protocol

from screentime.domain.agent import EntitlementStatus
from screentime.domain.devices import DeviceBypass
from screentime.domain.models import SessionStatus
from screentime.services.clock import Clock, SystemClock
from screentime.services.scheduler import DEFAULT_WARNING_MINUTES, SessionStore

_logger = logging.getLogger(__name__)


class BypassRepository(Protocol):
    """Persistence interface for per-device enforcement bypasses."""

    def get_device_bypass(self, device_id: str) -> DeviceBypass | None:
        """Return the bypass for a device, if any."""

    def set_device_bypass(self, bypass: DeviceBypass) -> None:
        """Create or replace a device bypass."""

    def clear_device_bypass(self, device_id: str) -> None:
        """Remove a device bypass."""


@dataclass
class StatusService:
    """Builds the entitlement answer for one device."""

    store: SessionStore
    bypass_repository: BypassRepository
    clock: Clock = field(default_factory=SystemClock)
    warning_minutes: int = DEFAULT_WARNING_MINUTES

    def device_status(self, device_id: str) -> EntitlementStatus:
        """Return whether the device may be used right now."""
        now = self.clock.now()
        bypass = self.bypass_repository.get_device_bypass(device_id)
        if bypass is not None and bypass.is_active(now):
            return EntitlementStatus(active=False, bypass_mode=True, server_time=now)
        if bypass is not None and bypass.is_expired(now):
            self._clear_expired_bypass(device_id)

        session = next(
            (
                s
                for s in self.store.list_open_sessions()
                if s.device_id == device_id and s.status == SessionStatus.ACTIVE
            ),
            None,
        )
        if session is None:
            return EntitlementStatus(active=False, server_time=now)

        ends_at = session.ends_at
        return EntitlementStatus(
            active=True,
            server_time=now,
            session_id=session.id,
            ends_at=ends_at,
            warn_at=ends_at - timedelta(minutes=self.warning_minutes),
        )

    def enable_bypass(
        self,
        device_id: str,
        reason: str | None = None,
        duration: timedelta | None = None,
    ) -> DeviceBypass:
        """Lift enforcement for a device, optionally for a limited time."""
        now = self.clock.now()
        expires_at: datetime | None = now + duration if duration else None
        bypass = DeviceBypass(
            device_id=device_id,
            enabled=True,
            enabled_at=now,
            reason=reason,
            expires_at=expires_at,
        )
        self.bypass_repository.set_device_bypass(bypass)
        _logger.info("Bypass enabled for device %s until %s", device_id, expires_at)
        return bypass

    def disable_bypass(self, device_id: str) -> None:
        """Restore enforcement for a device."""
        self.bypass_repository.clear_device_bypass(device_id)
        _logger.info("Bypass cleared for device %s", device_id)

    def _clear_expired_bypass(self, device_id: str) -> None:
        try:
            self.bypass_repository.clear_device_bypass(device_id)
        except Exception:
            _logger.warning(
                "Failed to clear expired bypass for device %s", device_id, exc_info=True
            )
