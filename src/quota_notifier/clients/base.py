"""Collaborator interfaces consumed by the alerting engine.

Injected at construction so the engine can be exercised with in-memory
fakes or ``AsyncMock`` objects.
"""

from typing import Protocol

from ..models.tenant import Application, ManagerRef, Organization, Space, UserProfile


class TenantDataSource(Protocol):
    """Organizations, spaces, applications and quotas.

    Every method raises ``DataSourceError`` when the platform is unreachable
    or returns data that does not validate.
    """

    async def list_organizations(self) -> list[Organization]: ...

    async def get_memory_used_mb(self, org_id: str) -> int: ...

    async def list_spaces(self, org_id: str) -> list[Space]: ...

    async def list_applications(self, space_id: str) -> list[Application]: ...

    async def list_org_managers(self, org_id: str) -> list[ManagerRef]: ...


class IdentityService(Protocol):
    """Resolves a user reference to exactly one profile.

    Raises ``IdentityNotFoundError`` for zero matches and
    ``IdentityAmbiguousError`` for more than one.
    """

    async def lookup_user(self, user_ref: str) -> UserProfile: ...
