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

"""In-process throttle store. State is lost when the process exits."""

from datetime import datetime

from ..models.usage import ThrottleRecord
from .base import ThrottleStore, as_utc


class MemoryThrottleStore(ThrottleStore):
    """Dict-backed throttle store for tests, dry runs and the ``memory`` backend."""

    def __init__(self) -> None:
        super().__init__()
        self._records: dict[str, ThrottleRecord] = {}

    async def get_record(self, recipient_key: str) -> ThrottleRecord | None:
        return self._records.get(recipient_key)

    async def record_send(self, recipient_key: str, now: datetime) -> None:
        self._records[recipient_key] = ThrottleRecord(recipient_key=recipient_key, last_sent=as_utc(now))

    async def count_records(self) -> int:
        return len(self._records)
