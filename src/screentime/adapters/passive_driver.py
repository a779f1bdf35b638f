"""No-op driver for devices enforced by an edge agent."""

import logging
from dataclasses import dataclass

from screentime.domain.models import Session
from screentime.services.devices import DeviceDriver

_logger = logging.getLogger(__name__)

PASSIVE_DRIVER_NAME = "passive"


@dataclass
class PassiveDriver(DeviceDriver):
    """Logs intents; the device's agent enforces them by polling status."""

    name: str = PASSIVE_DRIVER_NAME

    async def stop_session(self, session: Session) -> None:
        _logger.info(
            "Passive driver: session stopped session_id=%s device_id=%s",
            session.id,
            session.device_id,
        )

    async def apply_warning(self, session: Session, minutes_remaining: int) -> None:
        _logger.info(
            "Passive driver: warning applied session_id=%s device_id=%s minutes=%s",
            session.id,
            session.device_id,
            minutes_remaining,
        )
