"""
Fixed-rate pass scheduler.

Runs one evaluation pass per period after an initial delay. Passes never
overlap: a tick that arrives while a pass is still running is skipped.
"""

import asyncio
import logging
from typing import Any

from .models.results import PassReport
from .services.alert_engine import QuotaAlertEngine, errors_by_kind

logger = logging.getLogger(__name__)


class PassScheduler:
    """Single-flight periodic driver for ``QuotaAlertEngine.run_pass``."""

    def __init__(
        self,
        engine: QuotaAlertEngine,
        period_seconds: float,
        initial_delay_seconds: float = 0.0,
    ):
        """
        Args:
            engine: Runs one pass
            period_seconds: Time between pass starts
            initial_delay_seconds: Wait before the first pass so dependent
                services can come up
        """
        if period_seconds <= 0:
            raise ValueError("period_seconds must be positive")
        self.engine = engine
        self.period_seconds = period_seconds
        self.initial_delay_seconds = initial_delay_seconds
        self._running = False
        self._loop_task: asyncio.Task | None = None
        self._pass_task: asyncio.Task | None = None
        self._stats = {"passes": 0, "skipped_ticks": 0, "failed_passes": 0}

    @property
    def pass_running(self) -> bool:
        return self._pass_task is not None and not self._pass_task.done()

    async def start(self) -> None:
        """Start the background tick loop."""
        if self._running:
            logger.warning("Pass scheduler already running")
            return

        self._running = True
        self.engine.dispatcher.resume()
        self._loop_task = asyncio.create_task(self._tick_loop())
        logger.info(
            f"Pass scheduler started (period={self.period_seconds}s, initial_delay={self.initial_delay_seconds}s)"
        )

    async def stop(self) -> None:
        """Stop ticking, cancel the running pass and let submitted sends record."""
        self._running = False
        for task in (self._loop_task, self._pass_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._loop_task = None
        self._pass_task = None
        await self.engine.dispatcher.drain()
        logger.info("Pass scheduler stopped")

    async def wait(self) -> None:
        """Block until the tick loop ends."""
        if self._loop_task is not None:
            await self._loop_task

    async def run_once(self) -> PassReport:
        """Run a single pass now, outside the tick loop.

        Raises:
            RuntimeError: if a pass is already running.
        """
        if self.pass_running:
            raise RuntimeError("A pass is already running")
        self._pass_task = asyncio.create_task(self._run_pass())
        return await self._pass_task

    async def _tick_loop(self) -> None:
        loop = asyncio.get_running_loop()
        await asyncio.sleep(self.initial_delay_seconds)
        next_tick = loop.time()

        while self._running:
            if self.pass_running:
                self._stats["skipped_ticks"] += 1
                logger.warning("Previous pass still running, skipping this tick")
            else:
                self._pass_task = asyncio.create_task(self._scheduled_pass())

            next_tick += self.period_seconds
            await asyncio.sleep(max(0.0, next_tick - loop.time()))

    async def _scheduled_pass(self) -> None:
        try:
            await self._run_pass()
        except Exception:
            # Logged and counted by _run_pass; the next tick starts a fresh pass
            pass

    async def _run_pass(self) -> PassReport:
        try:
            report = await self.engine.run_pass()
        except asyncio.CancelledError:
            logger.warning("Pass cancelled")
            raise
        except Exception as e:
            self._stats["failed_passes"] += 1
            logger.exception(f"Pass failed unexpectedly: {e}")
            raise

        self._stats["passes"] += 1
        counts = errors_by_kind(report)
        if counts:
            logger.warning("Pass errors by kind: " + ", ".join(f"{k.value}={v}" for k, v in counts.items()))
        return report

    def get_stats(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "pass_running": self.pass_running,
            "period_seconds": self.period_seconds,
            **self._stats,
        }
