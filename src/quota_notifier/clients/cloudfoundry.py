"""
Cloud Foundry v2 API client implementing ``TenantDataSource``.

Endpoints used:
    GET /v2/organizations?inline-relations-depth=1   (paged, quota inlined)
    GET /v2/organizations/{guid}/memory_usage
    GET /v2/organizations/{guid}/spaces
    GET /v2/spaces/{guid}/apps
    GET /v2/organizations/{guid}/managers

Transient failures (transport errors and 5xx responses) are retried with
exponential backoff before surfacing as ``DataSourceError``. A 401 renews the
access token once.
"""

import logging
from typing import Any

import httpx
from pydantic import ValidationError
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from ..errors import DataSourceError
from ..models.tenant import Application, ManagerRef, Organization, Quota, Space
from .auth import TokenProvider

logger = logging.getLogger(__name__)


def is_retryable_error(exception: BaseException) -> bool:
    """
    Determine if a tenant API failure is transient.

    Returns:
        True for transport errors and 5xx responses, False for 4xx and
        everything else.
    """
    if isinstance(exception, httpx.HTTPStatusError):
        return 500 <= exception.response.status_code < 600
    return isinstance(exception, httpx.TransportError)


def _section(resource: Any, name: str) -> dict[str, Any]:
    if not isinstance(resource, dict):
        raise DataSourceError(f"Malformed resource in tenant API response: {resource!r}")
    section = resource.get(name) or {}
    if not isinstance(section, dict):
        raise DataSourceError(f"Malformed '{name}' in tenant API resource: {section!r}")
    return section


def _guid(resource: Any) -> str:
    return _section(resource, "metadata").get("guid", "")


def _entity(resource: Any) -> dict[str, Any]:
    return _section(resource, "entity")


class CloudFoundryClient:
    """Async client for the subset of the CF v2 API the notifier reads."""

    def __init__(
        self,
        api_url: str,
        tokens: TokenProvider,
        timeout: float = 30.0,
        verify: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
        log_requests: bool = False,
    ):
        """
        Args:
            api_url: Cloud Foundry API base URL
            tokens: Supplies bearer tokens
            timeout: HTTP request timeout in seconds
            verify: Verify TLS certificates (disable for self-signed targets)
            transport: Optional httpx transport (tests inject MockTransport)
            log_requests: Log every request and response status
        """
        self.api_url = api_url.rstrip("/")
        self.tokens = tokens
        event_hooks = {"response": [self._log_response]} if log_requests else None
        self._client = httpx.AsyncClient(
            base_url=self.api_url,
            timeout=timeout,
            verify=verify,
            transport=transport,
            event_hooks=event_hooks,
        )

    @staticmethod
    async def _log_response(response: httpx.Response) -> None:
        request = response.request
        logger.info(f"REQUEST: {request.method} {request.url} RESPONSE: {response.status_code}")

    # ── TenantDataSource ────────────────────────────────────────────────

    async def list_organizations(self) -> list[Organization]:
        resources = await self._get_all("/v2/organizations", params={"inline-relations-depth": 1})
        orgs = []
        for resource in resources:
            entity = _entity(resource)
            quota = await self._quota_for(entity)
            orgs.append(self._validate(Organization, id=_guid(resource), name=entity.get("name"), quota=quota))
        logger.debug(f"Listed {len(orgs)} organizations")
        return orgs

    async def get_memory_used_mb(self, org_id: str) -> int:
        payload = await self._get_json(f"/v2/organizations/{org_id}/memory_usage")
        try:
            return int(payload["memory_usage_in_mb"])
        except (KeyError, TypeError, ValueError) as e:
            raise DataSourceError(f"Malformed memory usage for org {org_id}: {payload!r}") from e

    async def list_spaces(self, org_id: str) -> list[Space]:
        resources = await self._get_all(f"/v2/organizations/{org_id}/spaces")
        return [self._validate(Space, id=_guid(r), name=_entity(r).get("name")) for r in resources]

    async def list_applications(self, space_id: str) -> list[Application]:
        resources = await self._get_all(f"/v2/spaces/{space_id}/apps")
        apps = []
        for resource in resources:
            entity = _entity(resource)
            apps.append(
                self._validate(
                    Application,
                    name=entity.get("name") or "",
                    instances=entity.get("instances") or 0,
                    memory_mb=entity.get("memory") or 0,
                )
            )
        return apps

    async def list_org_managers(self, org_id: str) -> list[ManagerRef]:
        resources = await self._get_all(f"/v2/organizations/{org_id}/managers")
        return [self._validate(ManagerRef, user_ref=_guid(r)) for r in resources]

    # ── Helpers ─────────────────────────────────────────────────────────

    async def _quota_for(self, org_entity: dict[str, Any]) -> Quota | None:
        quota_entity = None
        inlined = org_entity.get("quota_definition")
        if isinstance(inlined, dict):
            quota_entity = _entity(inlined)
        elif org_entity.get("quota_definition_url"):
            quota_entity = _entity(await self._get_json(org_entity["quota_definition_url"]))

        if not quota_entity or quota_entity.get("memory_limit") is None:
            return None
        return self._validate(Quota, memory_limit_mb=quota_entity["memory_limit"])

    @staticmethod
    def _validate(model: type, **fields: Any) -> Any:
        try:
            return model(**fields)
        except ValidationError as e:
            raise DataSourceError(f"Malformed {model.__name__} in tenant API response: {e}") from e

    async def _get_all(self, path: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Follow ``next_url`` links and return every resource."""
        resources: list[dict[str, Any]] = []
        next_path: str | None = path
        while next_path:
            page = await self._get_json(next_path, params=params)
            page_resources = page.get("resources") or []
            if not isinstance(page_resources, list):
                raise DataSourceError(f"Tenant API GET {next_path} returned malformed resources")
            resources.extend(page_resources)
            next_path = page.get("next_url")
            params = None  # next_url already carries the query
        return resources

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            payload = await self._get_with_retry(path, params)
        except httpx.HTTPStatusError as e:
            raise DataSourceError(
                f"Tenant API GET {path} returned HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise DataSourceError(f"Tenant API GET {path} failed: {type(e).__name__}: {e}") from e
        except ValueError as e:
            raise DataSourceError(f"Tenant API GET {path} returned invalid JSON") from e

        if not isinstance(payload, dict):
            raise DataSourceError(f"Tenant API GET {path} returned {type(payload).__name__}, expected an object")
        return payload

    @retry(
        retry=retry_if_exception(is_retryable_error),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        reraise=True,
    )
    async def _get_with_retry(self, path: str, params: dict[str, Any] | None) -> Any:
        response = await self._request(path, params)
        if response.status_code == 401:
            logger.info("Tenant API rejected token, renewing")
            await self.tokens.invalidate()
            response = await self._request(path, params)
        response.raise_for_status()
        return response.json()

    async def _request(self, path: str, params: dict[str, Any] | None) -> httpx.Response:
        token = await self.tokens.get_token()
        return await self._client.get(
            path,
            params=params,
            headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
        )

    async def close(self) -> None:
        await self._client.aclose()
