"""Alerting engine services."""

from .alert_engine import QuotaAlertEngine
from .composer import MessageComposer
from .dispatcher import DeliveryDispatcher
from .evaluator import evaluate, percent_used
from .recipient_resolver import RecipientResolver
from .snapshot_builder import UsageSnapshotBuilder

__all__ = [
    "DeliveryDispatcher",
    "MessageComposer",
    "QuotaAlertEngine",
    "RecipientResolver",
    "UsageSnapshotBuilder",
    "evaluate",
    "percent_used",
]
