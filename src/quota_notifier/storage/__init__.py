"""Throttle store backends."""

from .base import ThrottleStore
from .factory import create_throttle_store
from .memory_store import MemoryThrottleStore
from .sqlite_store import SqliteThrottleStore

__all__ = ["MemoryThrottleStore", "SqliteThrottleStore", "ThrottleStore", "create_throttle_store"]
