"""HTTP client for the authority's agent status endpoint."""

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx
from pydantic import AwareDatetime, BaseModel, ValidationError

from screentime.domain.agent import EntitlementStatus

_logger = logging.getLogger(__name__)

STATUS_PATH = "/v1/agent/session"


class StatusQueryError(Exception):
    """The status could not be obtained; treated as a network failure."""


class UnauthorizedError(StatusQueryError):
    """The agent token was rejected (HTTP 401)."""


class ForbiddenError(StatusQueryError):
    """The token is not valid for this device (HTTP 403)."""


class UnexpectedStatusError(StatusQueryError):
    """Any other non-success HTTP status."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"unexpected status {status_code}: {body}")
        self.status_code = status_code


class MalformedStatusError(StatusQueryError):
    """The response body did not match the status schema."""


class SessionStatusPayload(BaseModel):
    """Wire format of the status endpoint."""

    active: bool
    session_id: str | None = None
    ends_at: AwareDatetime | None = None
    warn_at: AwareDatetime | None = None
    server_time: AwareDatetime
    bypass_mode: bool = False

    @classmethod
    def from_status(cls, status: EntitlementStatus) -> "SessionStatusPayload":
        return cls(
            active=status.active,
            session_id=status.session_id,
            ends_at=status.ends_at,
            warn_at=status.warn_at,
            server_time=status.server_time,
            bypass_mode=status.bypass_mode,
        )

    def to_status(self) -> EntitlementStatus:
        return EntitlementStatus(
            active=self.active,
            server_time=self.server_time,
            bypass_mode=self.bypass_mode,
            session_id=self.session_id,
            ends_at=self.ends_at,
            warn_at=self.warn_at,
        )


class StatusClient(Protocol):
    """Interface for querying a device's entitlement."""

    async def get_session_status(self, device_id: str) -> EntitlementStatus:
        """Return the device status or raise StatusQueryError."""


@dataclass
class HttpxStatusClient(StatusClient):
    """HTTPX-backed status client using a bearer agent token."""

    base_url: str
    token: str
    http_client: httpx.AsyncClient
    timeout_seconds: float = 10

    @classmethod
    def create(cls, base_url: str, token: str) -> "HttpxStatusClient":
        """Create a status client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            token=token,
            http_client=httpx.AsyncClient(),
        )

    async def get_session_status(self, device_id: str) -> EntitlementStatus:
        """Fetch the current status for the device."""
        url = f"{self.base_url}{STATUS_PATH}"
        try:
            response = await self.http_client.get(
                url,
                params={"device_id": device_id},
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Accept": "application/json",
                },
                timeout=self.timeout_seconds,
            )
        except httpx.HTTPError as exc:
            raise StatusQueryError(f"request failed: {exc}") from exc

        if response.status_code == httpx.codes.UNAUTHORIZED:
            raise UnauthorizedError("unauthorized: invalid or disabled token")
        if response.status_code == httpx.codes.FORBIDDEN:
            raise ForbiddenError("forbidden: not authorized for this device")
        if response.status_code != httpx.codes.OK:
            raise UnexpectedStatusError(response.status_code, response.text)

        try:
            payload = SessionStatusPayload.model_validate_json(response.content)
        except ValidationError as exc:
            raise MalformedStatusError(f"failed to parse response: {exc}") from exc

        _logger.debug(
            "Session status received: active=%s bypass_mode=%s session_id=%s",
            payload.active,
            payload.bypass_mode,
            payload.session_id,
        )
        return payload.to_status()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
