"""OAuth2 token acquisition against UAA.

Supports the three ways the notifier can be given credentials:

- username/password            → ``password`` grant
- access token/refresh token   → the access token is used until it expires,
                                 then renewed with the ``refresh_token`` grant
- client id/secret only        → ``client_credentials`` grant
"""

import asyncio
import logging
import time

import httpx

from ..errors import ConfigurationError, DataSourceError

logger = logging.getLogger(__name__)

# Renew this many seconds before the advertised expiry
EXPIRY_MARGIN_SECONDS = 30


class TokenProvider:
    """Caches a bearer token and renews it on demand."""

    def __init__(
        self,
        token_url: str,
        client_id: str = "cf",
        client_secret: str | None = None,
        username: str | None = None,
        password: str | None = None,
        access_token: str | None = None,
        refresh_token: str | None = None,
        timeout: float = 30.0,
        verify: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.username = username
        self.password = password
        self._access_token = access_token
        self._refresh_token = refresh_token
        # A supplied access token has unknown lifetime; trust it until a 401
        self._expires_at = float("inf") if access_token else 0.0
        self._lock = asyncio.Lock()
        self._client = httpx.AsyncClient(timeout=timeout, verify=verify, transport=transport)

    async def get_token(self) -> str:
        """Return a valid access token, fetching a new one when needed."""
        async with self._lock:
            if self._access_token and time.monotonic() < self._expires_at:
                return self._access_token
            await self._fetch()
            return self._access_token

    async def invalidate(self) -> None:
        """Forget the cached access token (after the API answered 401)."""
        async with self._lock:
            self._expires_at = 0.0

    def _grant(self) -> dict[str, str]:
        if self._refresh_token:
            return {"grant_type": "refresh_token", "refresh_token": self._refresh_token}
        if self.username and self.password:
            return {"grant_type": "password", "username": self.username, "password": self.password}
        if self.client_secret:
            return {"grant_type": "client_credentials"}
        raise ConfigurationError("No credentials available to obtain an access token")

    async def _fetch(self) -> None:
        data = self._grant()
        try:
            response = await self._client.post(
                self.token_url,
                data=data,
                auth=(self.client_id, self.client_secret or ""),
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise DataSourceError(
                f"Token request ({data['grant_type']}) rejected with HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise DataSourceError(f"Token request failed: {type(e).__name__}: {e}") from e

        token = payload.get("access_token")
        if not token:
            raise DataSourceError("Token response did not contain an access_token")

        self._access_token = token
        self._refresh_token = payload.get("refresh_token", self._refresh_token)
        expires_in = payload.get("expires_in")
        if expires_in is None:
            self._expires_at = float("inf")
        else:
            self._expires_at = time.monotonic() + max(0, int(expires_in) - EXPIRY_MARGIN_SECONDS)
        logger.debug(f"Obtained access token via {data['grant_type']} grant")

    async def close(self) -> None:
        await self._client.aclose()
