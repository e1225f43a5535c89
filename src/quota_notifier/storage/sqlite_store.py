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
SQLite-backed throttle store.

Keeps one row per recipient key with the last-sent UTC timestamp so the
cooldown window survives process restarts. Async operations via aiosqlite;
each upsert commits in its own transaction.
"""

import logging
import os
from datetime import datetime

import aiosqlite

from ..errors import ThrottleStoreError
from ..models.usage import ThrottleRecord
from .base import ThrottleStore, as_utc

logger = logging.getLogger(__name__)


class SqliteThrottleStore(ThrottleStore):
    """Async SQLite throttle store."""

    def __init__(self, db_path: str):
        """
        Initialize the throttle store.

        Args:
            db_path: Path to SQLite database file
        """
        super().__init__()
        self.db_path = db_path
        self._initialized = False

    async def initialize(self) -> None:
        """Create the schema if it does not exist."""
        if self._initialized:
            return

        directory = os.path.dirname(self.db_path)
        try:
            if directory:
                os.makedirs(directory, exist_ok=True)

            async with aiosqlite.connect(self.db_path) as db:
                await db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS throttle_records (
                        recipient_key TEXT PRIMARY KEY,
                        last_sent TEXT NOT NULL
                    )
                """
                )
                await db.commit()
        except (aiosqlite.Error, OSError) as e:
            raise ThrottleStoreError(f"Failed to initialize throttle store at {self.db_path}: {e}") from e

        self._initialized = True
        logger.info(f"Throttle store initialized at {self.db_path}")

    async def get_record(self, recipient_key: str) -> ThrottleRecord | None:
        if not self._initialized:
            await self.initialize()

        try:
            async with aiosqlite.connect(self.db_path) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(
                    "SELECT recipient_key, last_sent FROM throttle_records WHERE recipient_key = ?",
                    (recipient_key,),
                )
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise ThrottleStoreError(f"Failed to read throttle record for {recipient_key}: {e}") from e

        if row is None:
            return None
        return ThrottleRecord.from_dict(dict(row))

    async def record_send(self, recipient_key: str, now: datetime) -> None:
        if not self._initialized:
            await self.initialize()

        record = ThrottleRecord(recipient_key=recipient_key, last_sent=as_utc(now))
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute(
                    """
                    INSERT INTO throttle_records (recipient_key, last_sent)
                    VALUES (:recipient_key, :last_sent)
                    ON CONFLICT(recipient_key) DO UPDATE SET last_sent = excluded.last_sent
                """,
                    record.to_dict(),
                )
                await db.commit()
        except aiosqlite.Error as e:
            raise ThrottleStoreError(f"Failed to record send for {recipient_key}: {e}") from e

        logger.debug(f"Recorded send to {recipient_key} at {record.last_sent.isoformat()}")

    async def count_records(self) -> int:
        """Number of recipient keys ever notified."""
        if not self._initialized:
            await self.initialize()

        try:
            async with aiosqlite.connect(self.db_path) as db:
                cursor = await db.execute("SELECT COUNT(*) FROM throttle_records")
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise ThrottleStoreError(f"Failed to count throttle records: {e}") from e
        return row[0] if row else 0

    async def close(self) -> None:
        """Connections are per-operation; nothing to release."""
        self._initialized = False
