"""
Delivery dispatcher.

For each resolved recipient of an alerting organization:

    lock(key) → should_send → compose → channel.send → record_send

Recipients are delivered concurrently and independently: one failure never
blocks the others. The send and its ``record_send`` run as a shielded task so
that a cancelled pass (process shutdown) still records sends that were
already submitted; ``drain()`` waits for those tasks.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from ..channels.base import DeliveryChannel
from ..config import ThrottleScope
from ..errors import ErrorKind, PassError, ThrottleStoreError
from ..models.results import DeliveryResult, SendResult
from ..models.usage import OrgUsageSnapshot, Recipient, throttle_key
from ..storage.base import ThrottleStore
from .composer import MessageComposer

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeliveryDispatcher:
    """Sends alert mail to eligible recipients and records each send."""

    def __init__(
        self,
        store: ThrottleStore,
        channel: DeliveryChannel,
        composer: MessageComposer,
        sender: str,
        subject: str,
        cooldown: timedelta,
        scope: ThrottleScope = "recipient",
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Args:
            store: Throttle store gating resends
            channel: The single active delivery channel
            composer: Renders message bodies
            sender: From address
            subject: Subject line
            cooldown: Minimum time between two mails to the same key
            scope: 'recipient' (key by email) or 'organization' (key by org and email)
            clock: Returns the current UTC time
        """
        self.store = store
        self.channel = channel
        self.composer = composer
        self.sender = sender
        self.subject = subject
        self.cooldown = cooldown
        self.scope = scope
        self._clock = clock
        self._inflight: set[asyncio.Task] = set()
        self._stopping = False

    def key_for(self, org_id: str, email: str) -> str:
        return throttle_key(email, org_id if self.scope == "organization" else None)

    async def dispatch(
        self,
        snapshot: OrgUsageSnapshot,
        recipients: list[Recipient],
        abort: asyncio.Event | None = None,
    ) -> list[DeliveryResult]:
        """
        Deliver the alert for one organization to each recipient.

        Args:
            snapshot: Usage snapshot of the alerting organization
            recipients: Resolved recipients with an email on file
            abort: Pass-wide flag; set when the throttle store fails, after
                which no further sends start

        Returns:
            One DeliveryResult per recipient, in input order.
        """
        abort = abort or asyncio.Event()
        org_section = self.composer.render_org_section(snapshot)
        results = await asyncio.gather(
            *(self._deliver(snapshot, recipient, org_section, abort) for recipient in recipients)
        )
        return list(results)

    async def _deliver(
        self,
        snapshot: OrgUsageSnapshot,
        recipient: Recipient,
        org_section: str,
        abort: asyncio.Event,
    ) -> DeliveryResult:
        key = self.key_for(snapshot.org_id, recipient.email)
        if abort.is_set() or self._stopping:
            return DeliveryResult(recipient=recipient, recipient_key=key, status="aborted")

        task = asyncio.create_task(self._send_and_record(snapshot, recipient, key, org_section, abort))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return await asyncio.shield(task)

    async def _send_and_record(
        self,
        snapshot: OrgUsageSnapshot,
        recipient: Recipient,
        key: str,
        org_section: str,
        abort: asyncio.Event,
    ) -> DeliveryResult:
        async with self.store.lock(key):
            # Re-check: the pass may have been aborted or stopped while waiting for the lock
            if abort.is_set() or self._stopping:
                return DeliveryResult(recipient=recipient, recipient_key=key, status="aborted")

            now = self._clock()
            try:
                should_send = await self.store.should_send(key, now, self.cooldown)
            except ThrottleStoreError as e:
                abort.set()
                logger.error(f"Throttle store read failed for {key}, aborting remaining sends: {e}")
                return DeliveryResult(
                    recipient=recipient,
                    recipient_key=key,
                    status="aborted",
                    error=PassError.from_exception(e, org_id=snapshot.org_id, recipient=recipient.email),
                )

            if not should_send:
                logger.info(f"Not notifying {recipient.email} about org {snapshot.name}: within cooldown")
                return DeliveryResult(recipient=recipient, recipient_key=key, status="throttled")

            body = self.composer.compose(snapshot, recipient, org_section)
            logger.info(
                f"Sending quota notification to org manager [{recipient.display_name}] "
                f"of org [{snapshot.name}] at [{recipient.email}] via {self.channel.name}"
            )
            try:
                result = await self.channel.send(self.sender, recipient.email, self.subject, body)
            except Exception as e:
                logger.error(f"Delivery channel {self.channel.name} raised for {recipient.email}: {e}")
                result = SendResult(ok=False, detail=f"{type(e).__name__}: {e}")

            if not result.ok:
                return DeliveryResult(
                    recipient=recipient,
                    recipient_key=key,
                    status="failed",
                    error=PassError(
                        kind=ErrorKind.DELIVERY,
                        message=result.detail or "delivery failed",
                        org_id=snapshot.org_id,
                        recipient=recipient.email,
                    ),
                )

            try:
                await self.store.record_send(key, now)
            except ThrottleStoreError as e:
                # Sent but not recorded: the recipient may get a duplicate next pass
                abort.set()
                logger.error(f"Sent to {recipient.email} but could not record it, aborting remaining sends: {e}")
                return DeliveryResult(
                    recipient=recipient,
                    recipient_key=key,
                    status="sent",
                    error=PassError.from_exception(e, org_id=snapshot.org_id, recipient=recipient.email),
                )

            return DeliveryResult(recipient=recipient, recipient_key=key, status="sent")

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    async def drain(self) -> None:
        """Stop starting new sends and wait for submitted ones to be recorded."""
        self._stopping = True
        if self._inflight:
            logger.info(f"Waiting for {len(self._inflight)} in-flight deliveries to finish")
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    def resume(self) -> None:
        """Allow new sends again after a drain."""
        self._stopping = False
