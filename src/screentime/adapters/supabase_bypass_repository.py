"""Supabase repositories for device bypasses and downtime skips."""

from dataclasses import dataclass
from datetime import UTC, date, datetime

from supabase import Client

from screentime.domain.devices import DeviceBypass
from screentime.services.downtime import DowntimeSkipRepository
from screentime.services.status import BypassRepository


@dataclass
class SupabaseBypassRepository(BypassRepository):
    """Supabase implementation for device bypasses."""

    client: Client

    def get_device_bypass(self, device_id: str) -> DeviceBypass | None:
        """Return the bypass row for a device, if any."""
        response = (
            self.client.table("device_bypasses")
            .select("device_id, enabled, reason, enabled_at, expires_at")
            .eq("device_id", device_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        expires_raw = row.get("expires_at")
        return DeviceBypass(
            device_id=str(row["device_id"]),
            enabled=bool(row.get("enabled", False)),
            enabled_at=datetime.fromisoformat(str(row["enabled_at"])),
            reason=row.get("reason"),
            expires_at=datetime.fromisoformat(expires_raw) if expires_raw else None,
        )

    def set_device_bypass(self, bypass: DeviceBypass) -> None:
        """Create or replace the bypass row for a device."""
        self.client.table("device_bypasses").upsert(
            {
                "device_id": bypass.device_id,
                "enabled": bypass.enabled,
                "reason": bypass.reason,
                "enabled_at": bypass.enabled_at.isoformat(),
                "expires_at": (
                    bypass.expires_at.isoformat() if bypass.expires_at else None
                ),
            }
        ).execute()

    def clear_device_bypass(self, device_id: str) -> None:
        """Delete the bypass row for a device."""
        self.client.table("device_bypasses").delete().eq(
            "device_id", device_id
        ).execute()


@dataclass
class SupabaseDowntimeSkipRepository(DowntimeSkipRepository):
    """Supabase implementation for the single downtime skip date."""

    client: Client

    def get_skip_date(self) -> date | None:
        """Return the stored skip date, if any."""
        response = (
            self.client.table("downtime_skips")
            .select("skip_date")
            .eq("id", 1)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        raw = response.data[0].get("skip_date")
        return date.fromisoformat(raw) if raw else None

    def set_skip_date(self, day: date) -> None:
        """Store the skip date."""
        self.client.table("downtime_skips").upsert(
            {
                "id": 1,
                "skip_date": day.isoformat(),
                "updated_at": datetime.now(tz=UTC).isoformat(),
            }
        ).execute()
