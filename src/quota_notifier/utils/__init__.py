"""Small pure helpers shared across the notifier."""

from .formatting import format_mb

__all__ = ["format_mb"]
