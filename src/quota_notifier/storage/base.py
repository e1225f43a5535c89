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

"""
Throttle store contract.

The store is the only mutable state shared across a pass. All reads and
writes of last-sent timestamps go through ``should_send`` and
``record_send``; callers hold ``lock(key)`` around a check/record pair so
two tasks can never both decide to send to the same key.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

from ..models.usage import ThrottleRecord


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class ThrottleStore(ABC):
    """Persisted per-recipient last-notified state."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    @asynccontextmanager
    async def lock(self, recipient_key: str) -> AsyncIterator[None]:
        """Serialize check/record pairs for one key within this process."""
        key_lock = self._locks.setdefault(recipient_key, asyncio.Lock())
        async with key_lock:
            yield

    async def should_send(self, recipient_key: str, now: datetime, cooldown: timedelta) -> bool:
        """
        True if the key was never notified or the cooldown has fully elapsed.

        Raises:
            ThrottleStoreError: if the backing storage cannot be read.
        """
        record = await self.get_record(recipient_key)
        if record is None:
            return True
        return as_utc(now) - as_utc(record.last_sent) >= cooldown

    @abstractmethod
    async def record_send(self, recipient_key: str, now: datetime) -> None:
        """
        Upsert the last-sent timestamp for a key.

        Raises:
            ThrottleStoreError: if the write fails. Existing records are left
                unchanged.
        """
        ...

    @abstractmethod
    async def get_record(self, recipient_key: str) -> ThrottleRecord | None:
        ...

    @abstractmethod
    async def count_records(self) -> int:
        ...

    async def initialize(self) -> None:
        """Prepare backing storage. Idempotent."""

    async def close(self) -> None:
        """Release backing storage."""
