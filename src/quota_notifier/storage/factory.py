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
Throttle store factory.

Creates and initializes the configured throttle store backend.
"""

import logging

from ..config import StorageSettings
from .base import ThrottleStore
from .memory_store import MemoryThrottleStore
from .sqlite_store import SqliteThrottleStore

logger = logging.getLogger(__name__)


async def create_throttle_store(settings: StorageSettings) -> ThrottleStore:
    """
    Create and initialize the throttle store backend.

    Returns:
        Initialized ThrottleStore instance

    Raises:
        ThrottleStoreError: if the SQLite file cannot be created.
    """
    if settings.backend == "memory":
        store: ThrottleStore = MemoryThrottleStore()
        logger.warning("Using in-memory throttle store: cooldowns reset on every restart")
    else:
        store = SqliteThrottleStore(str(settings.db_path))
        logger.info(f"Using SQLite throttle store: {settings.db_path}")

    await store.initialize()
    return store
