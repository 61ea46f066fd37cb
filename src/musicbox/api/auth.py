from __future__ import annotations

import logging
from typing import Optional

import httpx

from musicbox.config import Settings
from musicbox.services.box.utils.errors import (
    unauthorized_error,
    upstream_unavailable_error,
)

logger = logging.getLogger(__name__)


def strip_bearer(authorization: str) -> str:
    """Strip a leading "Bearer " from an Authorization header value."""
    if authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return authorization.strip()


class IdentityClient:
    """
    Verifies bearer tokens against the identity provider.

    One pooled ``httpx.AsyncClient`` is opened at application startup and
    closed at shutdown. In development mode no request is made and every
    token resolves to the configured dev subject.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def start(self) -> None:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.settings.identity_timeout,
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
                transport=self._transport,
            )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def verify(self, authorization: str) -> str:
        """
        Verify a token and return the subject id it belongs to.

        Args:
            authorization: Raw token or "Bearer <token>" header value

        Raises:
            MusicBoxError: unauthorized for a rejected or empty token,
                upstream_unavailable when the provider times out or is unreachable
        """
        if self.settings.is_dev_mode:
            return self.settings.dev_user_subject

        token = strip_bearer(authorization or "")
        if not token:
            raise unauthorized_error("Missing bearer token")
        if not self.settings.identity_url:
            raise upstream_unavailable_error("identity provider", "IDENTITY_URL not configured")

        await self.start()
        try:
            response = await self._client.post(
                f"{self.settings.identity_url}/verify", json={"token": token}
            )
        except httpx.TimeoutException:
            raise upstream_unavailable_error("identity provider", "timeout")
        except httpx.RequestError as e:
            logger.error(f"Identity provider request failed: {e}")
            raise upstream_unavailable_error("identity provider", str(e))

        if response.status_code == 200:
            data = response.json()
            subject = data.get("subject") or data.get("user_id")
            if data.get("valid", True) and subject:
                return subject
            raise unauthorized_error(data.get("reason", "Invalid token"))
        if response.status_code in (401, 403):
            raise unauthorized_error("Invalid token")
        raise upstream_unavailable_error(
            "identity provider", f"unexpected status {response.status_code}"
        )
