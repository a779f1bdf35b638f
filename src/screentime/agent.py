"""Edge agent entrypoint: `python -m screentime.agent`."""

import asyncio
import logging
import signal
from datetime import timedelta

from screentime.adapters.platform import select_platform
from screentime.adapters.status_client import HttpxStatusClient, StatusClient
from screentime.app_logging import configure_logging
from screentime.config import AgentSettings
from screentime.services.enforcer import Enforcer

_logger = logging.getLogger(__name__)


def build_enforcer(settings: AgentSettings, client: StatusClient) -> Enforcer:
    """Wire an enforcer for the configured device."""
    return Enforcer(
        client=client,
        platform=select_platform(),
        device_id=settings.device_id,
        poll_interval_seconds=settings.poll_interval_seconds,
        grace_period=timedelta(seconds=settings.grace_period_seconds),
    )


async def run_agent(settings: AgentSettings) -> None:
    """Run the enforcement loop until SIGINT or SIGTERM."""
    client = HttpxStatusClient.create(settings.base_url, settings.agent_token)
    enforcer = build_enforcer(settings, client)
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, enforcer.stop)
        except NotImplementedError:
            signal.signal(signum, lambda *_: loop.call_soon_threadsafe(enforcer.stop))
    try:
        await enforcer.run()
    finally:
        await client.close()


def main() -> None:
    """Load settings from the environment and run the agent."""
    settings = AgentSettings()
    configure_logging(settings.log_level)
    _logger.info("Screen-time agent starting for device %s", settings.device_id)
    asyncio.run(run_agent(settings))


if __name__ == "__main__":
    main()
