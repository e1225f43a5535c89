# Copyright 2024 Heinrich Krupp
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Result values returned by each stage of an evaluation pass."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from ..errors import ErrorKind, PassError
from .usage import AlertDecision, Recipient

DeliveryStatus = Literal["sent", "throttled", "failed", "aborted"]


@dataclass(frozen=True)
class SendResult:
    """Outcome of one submission to a delivery channel."""

    ok: bool
    detail: str | None = None


@dataclass
class ResolveResult:
    """Deliverable recipients for one organization plus per-recipient failures."""

    recipients: list[Recipient] = field(default_factory=list)
    errors: list[PassError] = field(default_factory=list)
    skipped_no_email: int = 0


@dataclass(frozen=True)
class DeliveryResult:
    """What happened to one recipient in one pass."""

    recipient: Recipient
    recipient_key: str
    status: DeliveryStatus
    error: PassError | None = None


@dataclass
class OrgPassResult:
    """Outcome of evaluating a single organization."""

    org_id: str
    org_name: str
    decision: AlertDecision | None = None
    deliveries: list[DeliveryResult] = field(default_factory=list)
    errors: list[PassError] = field(default_factory=list)
    app_count: int = 0
    instance_count: int = 0

    @property
    def skipped(self) -> bool:
        """True when the organization could not be evaluated this pass."""
        return self.decision is None

    def count(self, status: DeliveryStatus) -> int:
        return sum(1 for d in self.deliveries if d.status == status)


@dataclass
class PassReport:
    """Summary of one full sweep over every organization."""

    started_at: datetime
    finished_at: datetime | None = None
    orgs: list[OrgPassResult] = field(default_factory=list)
    errors: list[PassError] = field(default_factory=list)
    aborted: bool = False

    @property
    def all_errors(self) -> list[PassError]:
        errors = list(self.errors)
        for org in self.orgs:
            errors.extend(org.errors)
            errors.extend(d.error for d in org.deliveries if d.error is not None)
        return errors

    @property
    def deliveries(self) -> list[DeliveryResult]:
        return [d for org in self.orgs for d in org.deliveries]

    def count(self, status: DeliveryStatus) -> int:
        return sum(org.count(status) for org in self.orgs)

    def errors_of(self, kind: ErrorKind) -> list[PassError]:
        return [e for e in self.all_errors if e.kind == kind]

    def to_dict(self) -> dict[str, Any]:
        """Flat summary for logging."""
        evaluated = [o for o in self.orgs if not o.skipped]
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "orgs_evaluated": len(evaluated),
            "orgs_skipped": len(self.orgs) - len(evaluated),
            "orgs_over_threshold": sum(1 for o in evaluated if o.decision and o.decision.eligible),
            "apps": sum(o.app_count for o in evaluated),
            "instances": sum(o.instance_count for o in evaluated),
            "sent": self.count("sent"),
            "throttled": self.count("throttled"),
            "failed": self.count("failed"),
            "aborted_sends": self.count("aborted"),
            "errors": len(self.all_errors),
            "aborted": self.aborted,
        }
