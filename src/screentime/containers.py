"""Dependency container wiring for the authority service."""

from dataclasses import dataclass

from supabase import create_client

from screentime.adapters.passive_driver import PassiveDriver
from screentime.adapters.supabase_bypass_repository import (
    SupabaseBypassRepository,
    SupabaseDowntimeSkipRepository,
)
from screentime.adapters.supabase_session_repository import SupabaseSessionRepository
from screentime.config import Settings, parse_agent_tokens
from screentime.services.clock import Clock, SystemClock
from screentime.services.devices import DeviceRegistry, DriverRegistry, DriverResolver
from screentime.services.downtime import DowntimeService
from screentime.services.scheduler import SessionScheduler
from screentime.services.status import StatusService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    agent_tokens: dict[str, str]
    device_registry: DeviceRegistry
    driver_registry: DriverRegistry
    downtime_service: DowntimeService
    scheduler: SessionScheduler
    status_service: StatusService
    clock: Clock


def build_registries(settings: Settings) -> tuple[DeviceRegistry, DriverRegistry]:
    """Register configured devices and the built-in drivers."""
    driver_registry = DriverRegistry()
    driver_registry.register(PassiveDriver())
    device_registry = DeviceRegistry()
    for device_config in settings.devices:
        device_registry.register(device_config.to_device())
    return device_registry, driver_registry


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    session_repository = SupabaseSessionRepository(supabase_client)
    bypass_repository = SupabaseBypassRepository(supabase_client)
    skip_repository = SupabaseDowntimeSkipRepository(supabase_client)
    device_registry, driver_registry = build_registries(resolved_settings)
    zone = resolved_settings.zone
    clock = SystemClock()
    downtime_service = DowntimeService(
        schedule=resolved_settings.downtime_schedule(),
        zone=zone,
        skip_repository=skip_repository,
    )
    scheduler = SessionScheduler(
        store=session_repository,
        resolver=DriverResolver(devices=device_registry, drivers=driver_registry),
        zone=zone,
        clock=clock,
        interval_seconds=resolved_settings.scheduler_interval_seconds,
        warning_minutes=resolved_settings.warning_minutes,
    )
    status_service = StatusService(
        store=session_repository,
        bypass_repository=bypass_repository,
        clock=clock,
        warning_minutes=resolved_settings.warning_minutes,
    )
    return AppContainer(
        settings=resolved_settings,
        agent_tokens=parse_agent_tokens(resolved_settings.agent_tokens),
        device_registry=device_registry,
        driver_registry=driver_registry,
        downtime_service=downtime_service,
        scheduler=scheduler,
        status_service=status_service,
        clock=clock,
    )
