"""UAA SCIM client implementing ``IdentityService``.

Looks up one user by stable id with ``GET /Users?filter=id eq "<id>"``.
No retries: a lookup that cannot reach UAA fails the organization's pass.
"""

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from ..errors import IdentityAmbiguousError, IdentityError, IdentityNotFoundError, IdentityUnavailableError
from ..models.tenant import UserProfile
from .auth import TokenProvider

logger = logging.getLogger(__name__)


def _primary_email(resource: dict[str, Any]) -> str | None:
    emails = resource.get("emails") or []
    for email in emails:
        if email.get("primary"):
            return email.get("value")
    return emails[0].get("value") if emails else None


def profile_from_scim(resource: dict[str, Any]) -> UserProfile:
    """Map a SCIM user resource to a ``UserProfile``.

    Raises:
        ValidationError, AttributeError or TypeError for a resource that does
        not have the SCIM shape.
    """
    name = resource.get("name") or {}
    return UserProfile(
        user_ref=resource.get("id", ""),
        given_name=name.get("givenName") or "",
        family_name=name.get("familyName") or "",
        primary_email=_primary_email(resource),
    )


class UaaClient:
    """Resolves user references against the UAA ``/Users`` endpoint."""

    def __init__(
        self,
        uaa_url: str,
        tokens: TokenProvider,
        timeout: float = 30.0,
        verify: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.uaa_url = uaa_url.rstrip("/")
        self.tokens = tokens
        self._client = httpx.AsyncClient(base_url=self.uaa_url, timeout=timeout, verify=verify, transport=transport)

    async def lookup_user(self, user_ref: str) -> UserProfile:
        """
        Resolve a user reference to exactly one profile.

        Raises:
            IdentityNotFoundError: no profile matches
            IdentityAmbiguousError: more than one profile matches
            IdentityUnavailableError: UAA could not be queried
        """
        try:
            token = await self.tokens.get_token()
            response = await self._client.get(
                "/Users",
                params={"filter": f'id eq "{user_ref}"'},
                headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise IdentityNotFoundError(user_ref) from e
            raise IdentityUnavailableError(f"UAA user lookup returned HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise IdentityUnavailableError(f"UAA user lookup failed: {type(e).__name__}: {e}") from e

        resources = (payload.get("resources") or []) if isinstance(payload, dict) else None
        if not isinstance(resources, list):
            raise IdentityError(user_ref, f"Malformed UAA user search response for {user_ref}")
        if not resources:
            raise IdentityNotFoundError(user_ref)
        if len(resources) > 1:
            raise IdentityAmbiguousError(user_ref, len(resources))

        try:
            profile = profile_from_scim(resources[0])
        except (ValidationError, AttributeError, TypeError) as e:
            raise IdentityError(user_ref, f"Malformed UAA user resource for {user_ref}: {e}") from e

        logger.debug(f"Resolved user {user_ref} to {profile.display_name}")
        return profile

    async def close(self) -> None:
        await self._client.aclose()
