"""Agent-facing endpoints with bearer token auth."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from screentime.adapters.status_client import STATUS_PATH, SessionStatusPayload

if TYPE_CHECKING:
    from screentime.containers import AppContainer

_logger = logging.getLogger(__name__)

router = APIRouter(tags=["agent"])


async def require_agent(
    request: Request, authorization: str | None = Header(default=None)
) -> str:
    """Return the device id bound to the request's agent token."""
    container: AppContainer = request.app.state.container
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    device_id = container.agent_tokens.get(token.strip())
    if device_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    return device_id


@router.get(
    STATUS_PATH,
    response_model=SessionStatusPayload,
    response_model_exclude_none=True,
)
async def device_session(
    request: Request,
    device_id: str | None = None,
    authorized_device_id: str = Depends(require_agent),
) -> SessionStatusPayload:
    """Return the entitlement status for the agent's device."""
    if not device_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="device_id query parameter required",
        )
    if device_id != authorized_device_id:
        _logger.warning(
            "Agent attempted to access unauthorized device: requested=%s authorized=%s",
            device_id,
            authorized_device_id,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized for this device",
        )
    container: AppContainer = request.app.state.container
    return SessionStatusPayload.from_status(
        container.status_service.device_status(device_id)
    )
