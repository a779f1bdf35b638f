"""Device and driver registries used to route enforcement intents."""

import threading
from dataclasses import dataclass, field
from typing import Protocol

from screentime.domain.devices import MAX_DEVICE_ID_LENGTH, Device
from screentime.domain.errors import (
    DeviceAlreadyRegisteredError,
    DeviceNotFoundError,
    DriverAlreadyRegisteredError,
    DriverNotFoundError,
    InvalidDeviceError,
)
from screentime.domain.models import Session


class DeviceDriver(Protocol):
    """Translates stop and warn intents into device-specific actions."""

    name: str

    async def stop_session(self, session: Session) -> None:
        """End the session on the device."""

    async def apply_warning(self, session: Session, minutes_remaining: int) -> None:
        """Warn the device's users; zero minutes announces a break."""


@dataclass
class DeviceRegistry:
    """Thread-safe map of device id to device record."""

    _devices: dict[str, Device] = field(default_factory=dict)
    _lock: threading.RLock = field(default_factory=threading.RLock)

    def register(self, device: Device) -> None:
        """Add a device after validating its fields."""
        _validate_device(device)
        with self._lock:
            if device.id in self._devices:
                raise DeviceAlreadyRegisteredError(
                    f"device {device.id} already registered"
                )
            self._devices[device.id] = device

    def get(self, device_id: str) -> Device:
        """Return a device or raise DeviceNotFoundError."""
        with self._lock:
            device = self._devices.get(device_id)
        if device is None:
            raise DeviceNotFoundError(f"device {device_id} not found")
        return device

    def list_devices(self) -> list[Device]:
        with self._lock:
            return list(self._devices.values())

    def list_by_driver(self, driver_name: str) -> list[Device]:
        with self._lock:
            return [d for d in self._devices.values() if d.driver == driver_name]


@dataclass
class DriverRegistry:
    """Thread-safe map of driver name to driver implementation."""

    _drivers: dict[str, DeviceDriver] = field(default_factory=dict)
    _lock: threading.RLock = field(default_factory=threading.RLock)

    def register(self, driver: DeviceDriver) -> None:
        with self._lock:
            if driver.name in self._drivers:
                raise DriverAlreadyRegisteredError(
                    f"driver already registered: {driver.name}"
                )
            self._drivers[driver.name] = driver

    def get(self, name: str) -> DeviceDriver:
        """Return a driver or raise DriverNotFoundError."""
        with self._lock:
            driver = self._drivers.get(name)
        if driver is None:
            raise DriverNotFoundError(f"driver not found: {name}")
        return driver

    def names(self) -> list[str]:
        with self._lock:
            return list(self._drivers)

    def unregister(self, name: str) -> None:
        with self._lock:
            if self._drivers.pop(name, None) is None:
                raise DriverNotFoundError(f"driver not found: {name}")


@dataclass
class DriverResolver:
    """Resolves the driver responsible for a session's device."""

    devices: DeviceRegistry
    drivers: DriverRegistry

    def for_session(self, session: Session) -> DeviceDriver:
        """Return the session's driver; raises a NotFoundError subclass."""
        device = self.devices.get(session.device_id)
        return self.drivers.get(device.driver)


def _validate_device(device: Device) -> None:
    if not device.id:
        raise InvalidDeviceError("device ID cannot be empty")
    if len(device.id) > MAX_DEVICE_ID_LENGTH:
        raise InvalidDeviceError(
            f"device ID '{device.id}' is too long "
            f"(max {MAX_DEVICE_ID_LENGTH} characters)"
        )
    if not device.name:
        raise InvalidDeviceError("device name cannot be empty")
    if not device.type:
        raise InvalidDeviceError("device type cannot be empty")
    if not device.driver:
        raise InvalidDeviceError("device driver cannot be empty")
