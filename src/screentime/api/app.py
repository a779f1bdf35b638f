"""FastAPI application factory."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request

from screentime.api.admin import router as admin_router
from screentime.api.agent import router as agent_router
from screentime.app_logging import configure_logging
from screentime.containers import AppContainer


def create_app(container: AppContainer, *, run_scheduler: bool = True) -> FastAPI:
    """Create a FastAPI app that hosts the session scheduler."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        scheduler = app.state.container.scheduler
        task = asyncio.create_task(scheduler.run()) if run_scheduler else None
        yield
        if task is not None:
            scheduler.stop()
            try:
                await task
            except Exception:
                logger.exception("Scheduler exited with an error")

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(agent_router)
    app.include_router(admin_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/v1/downtime")
    async def downtime(request: Request) -> dict[str, object]:
        """Return the current downtime state."""
        state_container: AppContainer = request.app.state.container
        now = state_container.clock.now()
        described = state_container.downtime_service.describe(now)
        return {
            "enabled": described.enabled,
            "in_downtime": described.in_downtime,
            "skipped_today": described.skipped_today,
            "current_end": _iso(described.current_end),
            "next_start": _iso(described.next_start),
        }

    return app


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
