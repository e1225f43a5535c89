"""Recipient resolution: org manager references to deliverable profiles."""

import asyncio
import logging

from ..clients.base import IdentityService, TenantDataSource
from ..errors import ErrorKind, IdentityError, PassError
from ..models.results import ResolveResult
from ..models.tenant import UserProfile
from ..models.usage import Recipient

logger = logging.getLogger(__name__)


class RecipientResolver:
    """Maps an organization's managers to recipients with an email on file.

    Identity failures are per-recipient: the reference is excluded and
    reported, the rest of the organization is still resolved. There are no
    retries here.
    """

    def __init__(self, data_source: TenantDataSource, identity: IdentityService):
        self.data_source = data_source
        self.identity = identity

    async def resolve(self, org_id: str, org_name: str | None = None) -> ResolveResult:
        """
        Resolve the managers of one organization.

        Raises:
            DataSourceError: if the manager list cannot be fetched.
            IdentityUnavailableError: if the identity service is unreachable.
            Either way the caller skips the organization for this pass.
        """
        label = org_name or org_id
        managers = await self.data_source.list_org_managers(org_id)
        lookups = await asyncio.gather(
            *(self.identity.lookup_user(m.user_ref) for m in managers),
            return_exceptions=True,
        )

        result = ResolveResult()
        seen: set[str] = set()
        for manager, outcome in zip(managers, lookups):
            if isinstance(outcome, IdentityError):
                logger.warning(f"Could not resolve manager {manager.user_ref} of org {label}: {outcome}")
                result.errors.append(
                    PassError(
                        kind=ErrorKind.IDENTITY,
                        message=str(outcome),
                        org_id=org_id,
                        recipient=manager.user_ref,
                    )
                )
                continue
            if isinstance(outcome, BaseException):
                # Service-wide failure (unreachable, cancelled): not specific to this manager
                raise outcome

            recipient = to_recipient(outcome)
            if not recipient.deliverable:
                logger.debug(f"Manager {recipient.display_name} of org {label} has no email on file")
                result.skipped_no_email += 1
                continue

            email_key = recipient.email.lower()
            if email_key in seen:
                continue
            seen.add(email_key)
            result.recipients.append(recipient)

        logger.info(
            f"Resolved {len(result.recipients)} of {len(managers)} managers for org {label} "
            f"({len(result.errors)} failed, {result.skipped_no_email} without email)"
        )
        return result


def to_recipient(profile: UserProfile) -> Recipient:
    return Recipient(
        user_id=profile.user_ref,
        display_name=profile.display_name,
        given_name=profile.given_name,
        email=profile.primary_email,
    )
