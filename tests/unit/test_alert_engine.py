"""Tests for the quota alert engine pass."""

import asyncio

import pytest

from quota_notifier.errors import DataSourceError, ErrorKind, IdentityUnavailableError
from quota_notifier.services.alert_engine import errors_by_kind


class TestAcmeScenario:
    @pytest.mark.asyncio
    async def test_one_delivery_to_manager_with_email(self, acme, dispatcher, make_engine, channel, memory_store, clock):
        engine = make_engine(dispatcher, threshold_percent=75)

        report = await engine.run_pass()

        org = report.orgs[0]
        assert org.decision.percent_used == 80
        assert org.decision.eligible is True
        assert [r.email for r in org.decision.recipients] == ["a@x.com"]
        assert channel.recipients == ["a@x.com"]
        assert (await memory_store.get_record("a@x.com")).last_sent == clock.now
        assert report.count("sent") == 1
        assert report.all_errors == []

    @pytest.mark.asyncio
    async def test_one_hour_later_is_throttled(self, acme, dispatcher, make_engine, channel, memory_store, clock):
        engine = make_engine(dispatcher, threshold_percent=75)
        await engine.run_pass()
        first_sent = (await memory_store.get_record("a@x.com")).last_sent

        clock.advance(hours=1)
        report = await engine.run_pass()

        assert len(channel.sent) == 1
        assert report.count("throttled") == 1
        assert report.count("sent") == 0
        assert (await memory_store.get_record("a@x.com")).last_sent == first_sent

    @pytest.mark.asyncio
    async def test_resent_after_cooldown(self, acme, dispatcher, make_engine, channel, clock):
        engine = make_engine(dispatcher, threshold_percent=75)
        await engine.run_pass()

        clock.advance(hours=24)
        await engine.run_pass()

        assert channel.recipients == ["a@x.com", "a@x.com"]

    @pytest.mark.asyncio
    async def test_replayed_pass_does_not_double_send(self, acme, dispatcher, make_engine, channel):
        engine = make_engine(dispatcher, threshold_percent=75)

        await asyncio.gather(engine.run_pass(), engine.run_pass())

        assert channel.recipients == ["a@x.com"]

    @pytest.mark.asyncio
    async def test_below_threshold_sends_nothing(self, acme, dispatcher, make_engine, channel, identity):
        engine = make_engine(dispatcher, threshold_percent=81)

        report = await engine.run_pass()

        assert report.orgs[0].decision.eligible is False
        assert channel.sent == []
        # Managers are only resolved for alerting orgs
        assert identity.lookups == []

    @pytest.mark.asyncio
    async def test_summary_counts(self, acme, dispatcher, make_engine):
        report = await make_engine(dispatcher, threshold_percent=75).run_pass()

        summary = report.to_dict()
        assert summary["orgs_evaluated"] == 1
        assert summary["orgs_over_threshold"] == 1
        assert summary["apps"] == 3
        assert summary["instances"] == 7
        assert summary["sent"] == 1
        assert summary["aborted"] is False


class TestNotFoundScenario:
    @pytest.mark.asyncio
    async def test_unresolvable_manager_excluded(self, tenant, identity, dispatcher, make_engine, channel):
        tenant.add_org("o1", "Org", limit_mb=1024, used_mb=1000, managers=["u-gone", "u-carol"])
        identity.add_user("u-carol", "Carol", "", "carol@example.com")

        report = await make_engine(dispatcher).run_pass()

        assert channel.recipients == ["carol@example.com"]
        identity_errors = report.errors_of(ErrorKind.IDENTITY)
        assert len(identity_errors) == 1
        assert identity_errors[0].recipient == "u-gone"


class TestQuotaScope:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [None, 0])
    async def test_no_decision_for_unusable_quota(self, tenant, identity, dispatcher, make_engine, channel, limit):
        tenant.add_org("o1", "NoQuota", limit_mb=limit, used_mb=5000, managers=["u-1"])
        identity.add_user("u-1", "Eve", "", "eve@example.com")

        report = await make_engine(dispatcher, threshold_percent=0).run_pass()

        assert report.orgs[0].decision is None
        assert channel.sent == []

    @pytest.mark.asyncio
    async def test_organization_filter(self, acme, tenant, identity, dispatcher, make_engine, channel):
        tenant.add_org("o2", "Other", limit_mb=1024, used_mb=1024, managers=["u-2"])
        identity.add_user("u-2", "Zed", "", "zed@example.com")

        report = await make_engine(dispatcher, threshold_percent=75, organization_filter="Other").run_pass()

        assert [o.org_name for o in report.orgs] == ["Other"]
        assert channel.recipients == ["zed@example.com"]


class TestFailureIsolation:
    @pytest.mark.asyncio
    async def test_listing_failure_ends_pass(self, acme, dispatcher, make_engine, channel):
        acme.failures["list_organizations"] = DataSourceError("connection refused")

        report = await make_engine(dispatcher).run_pass()

        assert report.orgs == []
        assert report.errors[0].kind == ErrorKind.DATA_SOURCE
        assert report.finished_at is not None
        assert channel.sent == []

    @pytest.mark.asyncio
    async def test_one_org_failure_does_not_stop_others(self, acme, tenant, identity, dispatcher, make_engine, channel):
        tenant.add_org("o2", "Broken", limit_mb=1024, used_mb=1024, managers=["u-2"])
        tenant.failing_orgs.add("o2")

        report = await make_engine(dispatcher, threshold_percent=75).run_pass()

        broken = next(o for o in report.orgs if o.org_id == "o2")
        assert broken.skipped is True
        assert broken.errors[0].kind == ErrorKind.DATA_SOURCE
        assert channel.recipients == ["a@x.com"]
        assert report.to_dict()["orgs_skipped"] == 1

    @pytest.mark.asyncio
    async def test_identity_outage_skips_org(self, acme, identity, dispatcher, make_engine, channel):
        identity.errors["u-alice"] = IdentityUnavailableError("UAA returned HTTP 503")

        report = await make_engine(dispatcher, threshold_percent=75).run_pass()

        assert channel.sent == []
        assert report.orgs[0].errors[0].kind == ErrorKind.IDENTITY
        assert report.orgs[0].deliveries == []

    @pytest.mark.asyncio
    async def test_delivery_failure_reported(self, acme, dispatcher, make_engine, channel, memory_store):
        channel.fail_for.add("a@x.com")

        report = await make_engine(dispatcher, threshold_percent=75).run_pass()

        assert report.count("failed") == 1
        assert errors_by_kind(report) == {ErrorKind.DELIVERY: 1}
        assert await memory_store.count_records() == 0

    @pytest.mark.asyncio
    async def test_no_reachable_managers(self, tenant, identity, dispatcher, make_engine, channel):
        tenant.add_org("o1", "Lonely", limit_mb=1024, used_mb=1024, managers=["u-1"])
        identity.add_user("u-1", "NoMail", "", None)

        report = await make_engine(dispatcher).run_pass()

        assert report.orgs[0].decision.eligible is True
        assert report.orgs[0].decision.recipients == ()
        assert channel.sent == []

    @pytest.mark.asyncio
    async def test_unexpected_error_skips_only_that_org(self, acme, tenant, identity, dispatcher, make_engine, channel):
        tenant.add_org("bad-guid", "Bad", limit_mb=1024, used_mb=1024, managers=["u-weird"])
        identity.errors["u-weird"] = AttributeError("'str' object has no attribute 'get'")

        report = await make_engine(dispatcher, threshold_percent=75).run_pass()

        assert channel.recipients == ["a@x.com"]
        bad = next(o for o in report.orgs if o.org_id == "bad-guid")
        assert bad.skipped is True
        assert bad.errors[0].kind == ErrorKind.DATA_SOURCE
        assert "has no attribute" in bad.errors[0].message
        assert report.finished_at is not None
