"""Tenant API, identity service and token clients."""

from .auth import TokenProvider
from .base import IdentityService, TenantDataSource
from .cloudfoundry import CloudFoundryClient
from .uaa import UaaClient

__all__ = ["CloudFoundryClient", "IdentityService", "TenantDataSource", "TokenProvider", "UaaClient"]
