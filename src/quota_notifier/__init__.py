"""Cloud Foundry organization memory-quota notifier."""

__version__ = "0.3.0"
