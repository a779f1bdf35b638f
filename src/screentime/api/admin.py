"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pydantic import BaseModel, Field

from screentime.domain.errors import DeviceNotFoundError

if TYPE_CHECKING:
    from screentime.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


class BypassRequest(BaseModel):
    """Body for enabling a device bypass."""

    reason: str | None = None
    duration_minutes: int | None = Field(default=None, gt=0)


def _get_admin_token(request: Request) -> str | None:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str | None = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not admin_token or not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


def _require_device(container: AppContainer, device_id: str) -> None:
    try:
        container.device_registry.get(device_id)
    except DeviceNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)
        ) from exc


@router.put("/devices/{device_id}/bypass", dependencies=[Depends(require_admin)])
async def enable_bypass(
    device_id: str, body: BypassRequest, request: Request
) -> dict[str, object]:
    """Lift enforcement for a device."""
    container: AppContainer = request.app.state.container
    _require_device(container, device_id)
    duration = (
        timedelta(minutes=body.duration_minutes) if body.duration_minutes else None
    )
    bypass = container.status_service.enable_bypass(
        device_id, reason=body.reason, duration=duration
    )
    return {
        "device_id": bypass.device_id,
        "enabled": bypass.enabled,
        "reason": bypass.reason,
        "enabled_at": bypass.enabled_at.isoformat(),
        "expires_at": bypass.expires_at.isoformat() if bypass.expires_at else None,
    }


@router.delete("/devices/{device_id}/bypass", dependencies=[Depends(require_admin)])
async def disable_bypass(device_id: str, request: Request) -> dict[str, str]:
    """Restore enforcement for a device."""
    container: AppContainer = request.app.state.container
    _require_device(container, device_id)
    container.status_service.disable_bypass(device_id)
    return {"status": "ok"}


@router.post("/downtime/skip", dependencies=[Depends(require_admin)])
async def skip_downtime(request: Request) -> dict[str, str]:
    """Skip downtime for the rest of today."""
    container: AppContainer = request.app.state.container
    now = container.clock.now()
    container.downtime_service.skip_today(now)
    local_date = now.astimezone(container.downtime_service.zone).date()
    return {"skip_date": local_date.isoformat()}
