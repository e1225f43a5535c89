"""Usage snapshot builder.

Turns tenant-API data into one immutable ``OrgUsageSnapshot`` per
organization that has a usable quota.
"""

import asyncio
import logging

from ..clients.base import TenantDataSource
from ..models.tenant import Application, Organization, Space
from ..models.usage import OrgUsageSnapshot, SpaceUsage
from ..utils.formatting import format_mb
from .evaluator import percent_used

logger = logging.getLogger(__name__)


def has_usable_quota(org: Organization) -> bool:
    """Quota-less and zero-limit organizations are out of scope for alerting."""
    return org.quota is not None and org.quota.memory_limit_mb > 0


def build_space_usage(space: Space, apps: list[Application]) -> SpaceUsage:
    """Sum instances x memory over a space's applications."""
    return SpaceUsage(
        space_id=space.id,
        name=space.name,
        consumed_mb=sum(app.instances * app.memory_mb for app in apps),
        app_count=len(apps),
        instance_count=sum(app.instances for app in apps),
    )


class UsageSnapshotBuilder:
    """Builds per-organization usage snapshots from a tenant data source."""

    def __init__(self, data_source: TenantDataSource):
        self.data_source = data_source

    async def build(self, org: Organization) -> OrgUsageSnapshot | None:
        """
        Build the usage snapshot for one organization.

        Returns:
            The snapshot, or None if the organization has no usable quota.

        Raises:
            DataSourceError: if usage, spaces or applications cannot be fetched.
        """
        if not has_usable_quota(org):
            logger.debug(f"Org {org.name} has no memory quota, skipping")
            return None

        memory_limit = org.quota.memory_limit_mb
        # Aggregate figure from the platform, matching what is billed
        memory_used = await self.data_source.get_memory_used_mb(org.id)

        spaces = await self.data_source.list_spaces(org.id)
        app_lists = await asyncio.gather(*(self.data_source.list_applications(s.id) for s in spaces))
        space_usage = tuple(build_space_usage(space, apps) for space, apps in zip(spaces, app_lists))

        snapshot = OrgUsageSnapshot(
            org_id=org.id,
            name=org.name,
            memory_limit_mb=memory_limit,
            memory_used_mb=memory_used,
            percent_used=percent_used(memory_used, memory_limit),
            spaces=space_usage,
        )
        logger.info(
            f"Org {org.name} is using {format_mb(memory_used)} of {format_mb(memory_limit)} ({snapshot.percent_used}%) "
            f"across {len(space_usage)} spaces"
        )
        return snapshot
