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

"""Per-pass usage snapshot, alert decision and throttle record models."""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class SpaceUsage:
    """Memory consumed by one space, recomputed from its applications."""

    space_id: str
    name: str
    consumed_mb: int
    app_count: int = 0
    instance_count: int = 0

    def percent_of_quota(self, memory_limit_mb: int) -> int:
        """Share of the org quota this space consumes (floor division)."""
        if memory_limit_mb <= 0:
            return 0
        return 100 * self.consumed_mb // memory_limit_mb


@dataclass(frozen=True)
class OrgUsageSnapshot:
    """Normalized usage of one organization for a single evaluation pass.

    ``memory_used_mb`` is the platform's aggregate figure (what is billed);
    the ``spaces`` breakdown is recomputed locally and used only for the
    human-readable message.
    """

    org_id: str
    name: str
    memory_limit_mb: int
    memory_used_mb: int
    percent_used: int
    spaces: tuple[SpaceUsage, ...] = ()

    @property
    def app_count(self) -> int:
        return sum(s.app_count for s in self.spaces)

    @property
    def instance_count(self) -> int:
        return sum(s.instance_count for s in self.spaces)


@dataclass(frozen=True)
class Recipient:
    """A resolved organization manager."""

    user_id: str
    display_name: str
    given_name: str = ""
    email: str | None = None

    @property
    def deliverable(self) -> bool:
        return bool(self.email)


@dataclass(frozen=True)
class AlertDecision:
    """Outcome of evaluating one organization against the threshold."""

    org_id: str
    percent_used: int
    eligible: bool
    recipients: tuple[Recipient, ...] = ()

    def with_recipients(self, recipients: list[Recipient]) -> "AlertDecision":
        return replace(self, recipients=tuple(recipients))


@dataclass
class ThrottleRecord:
    """Last time a recipient key was notified (timezone-aware UTC)."""

    recipient_key: str
    last_sent: datetime

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for storage."""
        return {
            "recipient_key": self.recipient_key,
            "last_sent": self.last_sent.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ThrottleRecord":
        """Create instance from dictionary."""
        return cls(
            recipient_key=data["recipient_key"],
            last_sent=datetime.fromisoformat(data["last_sent"]),
        )


def throttle_key(email: str, org_id: str | None = None) -> str:
    """Throttle store key for a recipient.

    Keys are case-insensitive on the email. With ``org_id`` the cooldown is
    tracked independently per organization.
    """
    normalized = email.strip().lower()
    if org_id is None:
        return normalized
    return f"{org_id}:{normalized}"
