"""Application configuration."""

import os
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from screentime.domain.devices import Device
from screentime.domain.downtime import DaySchedule, DowntimeSchedule

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

MAX_HOUR = 23
MAX_MINUTE = 59


def parse_time_of_day(value: str) -> tuple[int, int]:
    """Parse an HH:MM string into hour and minute."""
    parts = value.strip().split(":")
    if len(parts) != 2 or not all(part.isdigit() for part in parts):  # noqa: PLR2004
        raise ValueError(f"invalid time format '{value}', expected HH:MM")
    hour, minute = int(parts[0]), int(parts[1])
    if hour > MAX_HOUR:
        raise ValueError(f"hour must be between 0 and 23, got {hour}")
    if minute > MAX_MINUTE:
        raise ValueError(f"minute must be between 0 and 59, got {minute}")
    return hour, minute


class DayScheduleConfig(BaseModel):
    """Downtime window for one day type."""

    start_time: str
    end_time: str

    @field_validator("start_time", "end_time")
    @classmethod
    def _validate_time(cls, value: str) -> str:
        parse_time_of_day(value)
        return value

    def to_day_schedule(self) -> DaySchedule:
        start_hour, start_minute = parse_time_of_day(self.start_time)
        end_hour, end_minute = parse_time_of_day(self.end_time)
        return DaySchedule(
            start_hour=start_hour,
            start_minute=start_minute,
            end_hour=end_hour,
            end_minute=end_minute,
        )


class DowntimeConfig(BaseModel):
    """Downtime schedule, grouped by day type or as one legacy window."""

    start_time: str | None = None
    end_time: str | None = None
    weekday: DayScheduleConfig | None = None
    weekend: DayScheduleConfig | None = None

    @model_validator(mode="after")
    def _validate_legacy(self) -> "DowntimeConfig":
        if (self.start_time is None) != (self.end_time is None):
            raise ValueError(
                "both start_time and end_time must be set for legacy downtime format"
            )
        if self.start_time is not None and self.end_time is not None:
            parse_time_of_day(self.start_time)
            parse_time_of_day(self.end_time)
        return self

    def to_schedule(self) -> DowntimeSchedule:
        """Build the domain schedule; grouped windows win over the legacy one."""
        legacy = None
        if self.start_time is not None and self.end_time is not None:
            legacy = DayScheduleConfig(
                start_time=self.start_time, end_time=self.end_time
            ).to_day_schedule()
        return DowntimeSchedule(
            weekday=self.weekday.to_day_schedule() if self.weekday else legacy,
            weekend=self.weekend.to_day_schedule() if self.weekend else legacy,
        )


class DeviceConfig(BaseModel):
    """A device entry in the global registry."""

    id: str = Field(min_length=1, max_length=15)
    name: str = Field(min_length=1)
    type: str = Field(min_length=1)
    driver: str = Field(min_length=1)
    parameters: dict[str, Any] = Field(default_factory=dict)

    def to_device(self) -> Device:
        return Device(
            id=self.id,
            name=self.name,
            type=self.type,
            driver=self.driver,
            parameters=dict(self.parameters),
        )


def _load_zone(value: str) -> ZoneInfo:
    try:
        return ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"invalid timezone '{value}'") from exc


class Settings(BaseSettings):
    """Authority settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    timezone: str = "UTC"
    scheduler_interval_seconds: int = Field(default=60, gt=0)
    warning_minutes: int = Field(default=5, gt=0)
    agent_tokens: str | None = None
    admin_token: str | None = None
    devices: list[DeviceConfig] = Field(default_factory=list)
    downtime: DowntimeConfig | None = None
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        _load_zone(value)
        return value

    @model_validator(mode="after")
    def _validate_devices(self) -> "Settings":
        seen: set[str] = set()
        for device in self.devices:
            if device.id in seen:
                raise ValueError(f"device {device.id} configured twice")
            seen.add(device.id)
        return self

    @property
    def zone(self) -> ZoneInfo:
        """Configured time zone for day boundaries and downtime."""
        return _load_zone(self.timezone)

    def downtime_schedule(self) -> DowntimeSchedule | None:
        return self.downtime.to_schedule() if self.downtime else None


class AgentSettings(BaseSettings):
    """Edge agent settings loaded from SCREENTIME_AGENT_* variables."""

    device_id: str = Field(min_length=1)
    agent_token: str = Field(min_length=1)
    base_url: str = Field(min_length=1)
    poll_interval_seconds: float = Field(default=15, gt=0)
    grace_period_seconds: float = Field(default=30, gt=0)
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="SCREENTIME_AGENT_",
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_agent_tokens(raw: str | None) -> dict[str, str]:
    """Parse `token:device_id` pairs into a token -> device map."""
    if raw is None:
        return {}
    tokens: dict[str, str] = {}
    for chunk in raw.split(","):
        token, sep, device_id = chunk.strip().partition(":")
        if not sep or not token.strip() or not device_id.strip():
            continue
        tokens[token.strip()] = device_id.strip()
    return tokens
