import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

# Add src directory to Python path
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

from quota_notifier.errors import DataSourceError, IdentityNotFoundError  # noqa: E402
from quota_notifier.models import (  # noqa: E402
    Application,
    ManagerRef,
    Organization,
    Quota,
    SendResult,
    Space,
    UserProfile,
)
from quota_notifier.services import (  # noqa: E402
    DeliveryDispatcher,
    MessageComposer,
    QuotaAlertEngine,
    RecipientResolver,
    UsageSnapshotBuilder,
)
from quota_notifier.storage import MemoryThrottleStore  # noqa: E402

# Keep settings tests independent of the developer's shell
for _name in list(os.environ):
    if _name.startswith("QUOTA_"):
        del os.environ[_name]


class FakeTenant:
    """In-memory ``TenantDataSource``. ``failures`` maps a method name to the exception it raises."""

    def __init__(self):
        self.orgs: list[Organization] = []
        self.memory_used: dict[str, int] = {}
        self.spaces: dict[str, list[Space]] = {}
        self.apps: dict[str, list[Application]] = {}
        self.managers: dict[str, list[ManagerRef]] = {}
        self.failures: dict[str, Exception] = {}
        self.failing_orgs: set[str] = set()

    def add_org(self, org_id, name, limit_mb, used_mb, managers=(), spaces=None):
        quota = Quota(memory_limit_mb=limit_mb) if limit_mb is not None else None
        self.orgs.append(Organization(id=org_id, name=name, quota=quota))
        self.memory_used[org_id] = used_mb
        self.managers[org_id] = [ManagerRef(user_ref=ref) for ref in managers]
        self.spaces[org_id] = []
        for space_id, space_name, apps in spaces or []:
            self.spaces[org_id].append(Space(id=space_id, name=space_name))
            self.apps[space_id] = [Application(name=n, instances=i, memory_mb=m) for n, i, m in apps]

    def _check(self, method, org_id=None):
        if method in self.failures:
            raise self.failures[method]
        if org_id is not None and org_id in self.failing_orgs:
            raise DataSourceError(f"tenant API unavailable for {org_id}", status_code=503)

    async def list_organizations(self):
        self._check("list_organizations")
        return list(self.orgs)

    async def get_memory_used_mb(self, org_id):
        self._check("get_memory_used_mb", org_id)
        return self.memory_used[org_id]

    async def list_spaces(self, org_id):
        self._check("list_spaces", org_id)
        return list(self.spaces.get(org_id, []))

    async def list_applications(self, space_id):
        self._check("list_applications")
        return list(self.apps.get(space_id, []))

    async def list_org_managers(self, org_id):
        self._check("list_org_managers", org_id)
        return list(self.managers.get(org_id, []))


class FakeIdentity:
    """In-memory ``IdentityService``. Unknown references raise NotFound."""

    def __init__(self):
        self.profiles: dict[str, UserProfile] = {}
        self.errors: dict[str, Exception] = {}
        self.lookups: list[str] = []

    def add_user(self, user_ref, given_name="", family_name="", email=None):
        self.profiles[user_ref] = UserProfile(
            user_ref=user_ref, given_name=given_name, family_name=family_name, primary_email=email
        )

    async def lookup_user(self, user_ref):
        self.lookups.append(user_ref)
        if user_ref in self.errors:
            raise self.errors[user_ref]
        if user_ref not in self.profiles:
            raise IdentityNotFoundError(user_ref)
        return self.profiles[user_ref]


class RecordingChannel:
    """Delivery channel that records every submission. Addresses in ``fail_for`` fail."""

    name = "recording"

    def __init__(self):
        self.sent: list[dict] = []
        self.fail_for: set[str] = set()
        self.closed = False

    async def send(self, sender, to, subject, body):
        if to in self.fail_for:
            return SendResult(ok=False, detail="550 mailbox unavailable")
        self.sent.append({"from": sender, "to": to, "subject": subject, "body": body})
        return SendResult(ok=True, detail=f"<{len(self.sent)}@test>")

    @property
    def recipients(self) -> list[str]:
        return [m["to"] for m in self.sent]

    async def close(self):
        self.closed = True


class FakeClock:
    """Settable UTC clock."""

    def __init__(self, now: datetime):
        self.now = now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def tenant():
    return FakeTenant()


@pytest.fixture
def identity():
    return FakeIdentity()


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def memory_store():
    return MemoryThrottleStore()


@pytest.fixture
def composer():
    return MessageComposer(sender_name="The Platform Ops Team")


@pytest.fixture
def dispatcher(memory_store, channel, composer, clock):
    return DeliveryDispatcher(
        store=memory_store,
        channel=channel,
        composer=composer,
        sender="pcfops@example.com",
        subject="PCF org about to exceed quota",
        cooldown=timedelta(hours=24),
        clock=clock,
    )


@pytest.fixture
def make_engine(tenant, identity):
    """Build an engine around the fakes with a given dispatcher and threshold."""

    def _make(dispatcher, threshold_percent=80, **kwargs):
        return QuotaAlertEngine(
            data_source=tenant,
            builder=UsageSnapshotBuilder(tenant),
            resolver=RecipientResolver(tenant, identity),
            dispatcher=dispatcher,
            threshold_percent=threshold_percent,
            **kwargs,
        )

    return _make


@pytest.fixture
def acme(tenant, identity):
    """Org Acme: 8192 of 10240 MB used, one manager with an email and one without."""
    tenant.add_org(
        "acme-guid",
        "Acme",
        limit_mb=10240,
        used_mb=8192,
        managers=["u-alice", "u-bob"],
        spaces=[
            ("space-dev", "dev", [("web", 2, 1024), ("worker", 1, 2048)]),
            ("space-prod", "prod", [("api", 4, 1024)]),
        ],
    )
    identity.add_user("u-alice", "Alice", "Smith", "a@x.com")
    identity.add_user("u-bob", "Bob", "Jones", None)
    return tenant
