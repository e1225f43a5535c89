"""Error taxonomy for the quota notifier.

Exceptions are raised at collaborator boundaries (tenant API, identity
service, mail transport, throttle store) and converted into ``PassError``
values by the component that observes them. Callers branch on the
``ErrorKind`` of those values rather than letting exceptions skip code.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    """Failure categories, each with its own recovery rule."""

    CONFIGURATION = "configuration"  # fatal at startup
    DATA_SOURCE = "data_source"  # skip the organization for this pass
    IDENTITY = "identity"  # exclude the recipient
    DELIVERY = "delivery"  # no record written, recipient retried next pass
    THROTTLE_STORE = "throttle_store"  # abort remaining sends in the pass


class QuotaNotifierError(Exception):
    """Base class for all quota notifier errors."""

    kind: ErrorKind


class ConfigurationError(QuotaNotifierError):
    """Raised when settings are missing or invalid at startup."""

    kind = ErrorKind.CONFIGURATION


class DataSourceError(QuotaNotifierError):
    """Raised when the tenant API is unreachable or returns malformed data."""

    kind = ErrorKind.DATA_SOURCE

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class IdentityError(QuotaNotifierError):
    """Raised when a user reference cannot be resolved to a single profile."""

    kind = ErrorKind.IDENTITY

    def __init__(self, user_ref: str, message: str):
        self.user_ref = user_ref
        super().__init__(message)


class IdentityNotFoundError(IdentityError):
    """No profile matches the user reference."""

    def __init__(self, user_ref: str):
        super().__init__(user_ref, f"No identity profile found for user '{user_ref}'")


class IdentityAmbiguousError(IdentityError):
    """More than one profile matches the user reference."""

    def __init__(self, user_ref: str, matches: int):
        self.matches = matches
        super().__init__(user_ref, f"User '{user_ref}' matched {matches} identity profiles")


class IdentityUnavailableError(QuotaNotifierError):
    """The identity service could not be reached.

    Unlike ``IdentityError`` this is not specific to one user: the whole
    organization is skipped for this pass.
    """

    kind = ErrorKind.IDENTITY


class ThrottleStoreError(QuotaNotifierError):
    """Raised when the throttle store cannot read or write its records."""

    kind = ErrorKind.THROTTLE_STORE


@dataclass(frozen=True)
class PassError:
    """A recoverable (or pass-aborting) failure observed during a pass."""

    kind: ErrorKind
    message: str
    org_id: str | None = None
    recipient: str | None = None

    @classmethod
    def from_exception(
        cls,
        exc: Exception,
        org_id: str | None = None,
        recipient: str | None = None,
        default_kind: ErrorKind = ErrorKind.DATA_SOURCE,
    ) -> "PassError":
        """Build a PassError, taking the kind from the exception when it carries one."""
        kind = exc.kind if isinstance(exc, QuotaNotifierError) else default_kind
        return cls(kind=kind, message=str(exc) or type(exc).__name__, org_id=org_id, recipient=recipient)
