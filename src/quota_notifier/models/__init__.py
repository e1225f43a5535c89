"""Data models for tenant usage, alert decisions and pass results."""

from .results import DeliveryResult, OrgPassResult, PassReport, ResolveResult, SendResult
from .tenant import Application, ManagerRef, Organization, Quota, Space, UserProfile
from .usage import AlertDecision, OrgUsageSnapshot, Recipient, SpaceUsage, ThrottleRecord, throttle_key

__all__ = [
    "AlertDecision",
    "Application",
    "DeliveryResult",
    "ManagerRef",
    "OrgPassResult",
    "OrgUsageSnapshot",
    "Organization",
    "PassReport",
    "Quota",
    "Recipient",
    "ResolveResult",
    "SendResult",
    "Space",
    "SpaceUsage",
    "ThrottleRecord",
    "UserProfile",
    "throttle_key",
]
