"""
Quota alert engine: one evaluation pass over every organization.

Per organization, independently and concurrently (bounded):

    snapshot → evaluate → resolve managers → dispatch

Failures are turned into ``PassError`` values where they happen. A
data-source or identity-service failure skips that organization; a throttle
store failure sets the pass-wide abort flag so no further sends start. Any
other exception raised while evaluating one organization is reported as a
``DATA_SOURCE`` error for that organization and never ends the pass.
"""

import asyncio
import logging

from ..clients.base import TenantDataSource
from ..errors import ErrorKind, PassError, QuotaNotifierError
from ..models.results import OrgPassResult, PassReport
from ..models.tenant import Organization
from .dispatcher import DeliveryDispatcher, utcnow
from .evaluator import evaluate
from .recipient_resolver import RecipientResolver
from .snapshot_builder import UsageSnapshotBuilder

logger = logging.getLogger(__name__)


class QuotaAlertEngine:
    """Runs evaluation passes. Holds no state between passes."""

    def __init__(
        self,
        data_source: TenantDataSource,
        builder: UsageSnapshotBuilder,
        resolver: RecipientResolver,
        dispatcher: DeliveryDispatcher,
        threshold_percent: int,
        max_concurrency: int = 4,
        organization_filter: str | None = None,
    ):
        """
        Args:
            data_source: Tenant API client
            builder: Builds usage snapshots
            resolver: Resolves organization managers
            dispatcher: Sends and records notifications
            threshold_percent: Inclusive percent-used alert threshold
            max_concurrency: Organizations evaluated at the same time
            organization_filter: Only evaluate the organization with this name
        """
        self.data_source = data_source
        self.builder = builder
        self.resolver = resolver
        self.dispatcher = dispatcher
        self.threshold_percent = threshold_percent
        self.max_concurrency = max_concurrency
        self.organization_filter = organization_filter

    async def run_pass(self) -> PassReport:
        """Evaluate every organization once and deliver due notifications."""
        report = PassReport(started_at=utcnow())
        abort = asyncio.Event()

        try:
            organizations = await self.data_source.list_organizations()
        except QuotaNotifierError as e:
            logger.error(f"Could not list organizations, pass skipped: {e}")
            report.errors.append(PassError.from_exception(e))
            report.finished_at = utcnow()
            return report

        if self.organization_filter:
            organizations = [o for o in organizations if o.name == self.organization_filter]

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(org: Organization) -> OrgPassResult:
            async with semaphore:
                try:
                    return await self.evaluate_org(org, abort)
                except Exception as e:
                    logger.exception(f"Unexpected failure evaluating org {org.name}, skipped this pass: {e}")
                    result = OrgPassResult(org_id=org.id, org_name=org.name)
                    result.errors.append(PassError.from_exception(e, org_id=org.id, default_kind=ErrorKind.DATA_SOURCE))
                    return result

        report.orgs = list(await asyncio.gather(*(bounded(org) for org in organizations)))
        report.aborted = abort.is_set()
        report.finished_at = utcnow()

        summary = report.to_dict()
        logger.info(
            f"Pass complete: {summary['orgs_evaluated']} orgs evaluated, "
            f"{summary['orgs_over_threshold']} over {self.threshold_percent}%, "
            f"{summary['sent']} sent, {summary['throttled']} throttled, {summary['failed']} failed, "
            f"{summary['errors']} errors. "
            f"You are running {summary['apps']} apps in all orgs, with a total of {summary['instances']} instances"
        )
        if report.aborted:
            logger.error("Pass aborted remaining sends after a throttle store failure")
        return report

    async def evaluate_org(self, org: Organization, abort: asyncio.Event) -> OrgPassResult:
        """Evaluate one organization. Never raises for recoverable failures."""
        result = OrgPassResult(org_id=org.id, org_name=org.name)

        try:
            snapshot = await self.builder.build(org)
        except QuotaNotifierError as e:
            logger.warning(f"Skipping org {org.name} this pass: {e}")
            result.errors.append(PassError.from_exception(e, org_id=org.id))
            return result

        if snapshot is None:
            return result

        decision = evaluate(snapshot, self.threshold_percent)
        result.decision = decision
        result.app_count = snapshot.app_count
        result.instance_count = snapshot.instance_count
        if not decision.eligible:
            return result

        logger.info(f"Org {snapshot.name} is at {decision.percent_used}% of its quota")
        if abort.is_set():
            return result

        try:
            resolved = await self.resolver.resolve(org.id, org.name)
        except QuotaNotifierError as e:
            logger.warning(f"Could not resolve managers of org {org.name} this pass: {e}")
            result.errors.append(PassError.from_exception(e, org_id=org.id))
            return result

        result.errors.extend(resolved.errors)
        result.decision = decision.with_recipients(resolved.recipients)
        if not resolved.recipients:
            logger.warning(f"Org {org.name} is over threshold but has no reachable managers")
            return result

        result.deliveries = await self.dispatcher.dispatch(snapshot, resolved.recipients, abort)
        return result


def errors_by_kind(report: PassReport) -> dict[ErrorKind, int]:
    """Count a pass's errors per kind, for logging."""
    counts: dict[ErrorKind, int] = {}
    for error in report.all_errors:
        counts[error.kind] = counts.get(error.kind, 0) + 1
    return counts
