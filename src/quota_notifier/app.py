"""
Process wiring for the quota notifier.

Builds every component explicitly from ``Settings`` and hands them to the
scheduler. There is no global container: everything a component needs is
passed at construction.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta

from .channels import DeliveryChannel, LoggingChannel, create_channel
from .clients import CloudFoundryClient, TokenProvider, UaaClient
from .config import Settings
from .scheduler import PassScheduler
from .services import (
    DeliveryDispatcher,
    MessageComposer,
    QuotaAlertEngine,
    RecipientResolver,
    UsageSnapshotBuilder,
)
from .storage import MemoryThrottleStore, ThrottleStore, create_throttle_store

logger = logging.getLogger(__name__)


@dataclass
class NotifierApp:
    """All long-lived components of one notifier process."""

    settings: Settings
    tokens: TokenProvider
    tenant: CloudFoundryClient
    identity: UaaClient
    store: ThrottleStore
    channel: DeliveryChannel
    engine: QuotaAlertEngine
    scheduler: PassScheduler
    closed: bool = field(default=False, init=False)

    async def close(self) -> None:
        """Release HTTP clients, the delivery channel and the store."""
        if self.closed:
            return
        self.closed = True
        await self.channel.close()
        await self.tenant.close()
        await self.identity.close()
        await self.tokens.close()
        await self.store.close()
        logger.info("Quota notifier components closed")


def _secret(value) -> str | None:
    return value.get_secret_value() if value is not None else None


async def build_app(settings: Settings, dry_run: bool = False) -> NotifierApp:
    """
    Create and initialize every component.

    Args:
        settings: Validated settings
        dry_run: Log messages instead of sending them and keep throttle
            state in memory only

    Raises:
        ConfigurationError: if required settings are missing.
        ThrottleStoreError: if the throttle store cannot be initialized.
    """
    settings.check_ready()
    cf = settings.cloudfoundry
    verify = not cf.skip_ssl_validation

    tokens = TokenProvider(
        token_url=f"{cf.uaa_url.rstrip('/')}/oauth/token",
        client_id=cf.client_id,
        client_secret=_secret(cf.client_secret),
        username=cf.username,
        password=_secret(cf.password),
        access_token=_secret(cf.access_token),
        refresh_token=_secret(cf.refresh_token),
        timeout=cf.timeout,
        verify=verify,
    )
    logger.info(f"Connecting to Cloud Foundry target: {cf.api_url}")
    tenant = CloudFoundryClient(
        cf.api_url, tokens, timeout=cf.timeout, verify=verify, log_requests=settings.log.verbose_http
    )
    identity = UaaClient(cf.uaa_url, tokens, timeout=cf.timeout, verify=verify)

    if dry_run:
        store: ThrottleStore = MemoryThrottleStore()
        channel: DeliveryChannel = LoggingChannel()
        logger.info("Dry run: messages are logged, throttle state is not persisted")
    else:
        store = await create_throttle_store(settings.storage)
        channel = create_channel(settings.mail)
    logger.info(f"Throttle store holds {await store.count_records()} recipient records")

    alert = settings.alert
    composer = MessageComposer(sender_name=alert.team_name)
    dispatcher = DeliveryDispatcher(
        store=store,
        channel=channel,
        composer=composer,
        sender=settings.mail.sender,
        subject=settings.mail.subject,
        cooldown=timedelta(hours=alert.cooldown_hours),
        scope=alert.throttle_scope,
    )
    engine = QuotaAlertEngine(
        data_source=tenant,
        builder=UsageSnapshotBuilder(tenant),
        resolver=RecipientResolver(tenant, identity),
        dispatcher=dispatcher,
        threshold_percent=alert.threshold_percent,
        max_concurrency=alert.max_concurrency,
        organization_filter=cf.organization,
    )
    scheduler = PassScheduler(
        engine,
        period_seconds=settings.scheduler.period_seconds,
        initial_delay_seconds=settings.scheduler.initial_delay_seconds,
    )

    return NotifierApp(
        settings=settings,
        tokens=tokens,
        tenant=tenant,
        identity=identity,
        store=store,
        channel=channel,
        engine=engine,
        scheduler=scheduler,
    )
