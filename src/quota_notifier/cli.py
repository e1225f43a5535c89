"""
Command-line entry point.

Usage:
    quota-notifier                # schedule passes until SIGINT/SIGTERM
    quota-notifier --once         # run a single pass and exit
    quota-notifier --dry-run      # log messages instead of sending them

Configuration comes from QUOTA_* environment variables (see ``config.py``).
"""

import argparse
import asyncio
import json
import logging
import signal
import sys

from . import __version__
from .app import build_app
from .config import Settings, load_settings
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def configure_logging(level: str, verbose: bool = False, verbose_http: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    if not verbose_http:
        # httpx logs every request at INFO
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)


async def run(settings: Settings, once: bool = False, dry_run: bool = False) -> None:
    """Build the components, then run one pass or schedule until signalled."""
    app = await build_app(settings, dry_run=dry_run)
    try:
        if once:
            report = await app.scheduler.run_once()
            logger.info(f"Pass report: {json.dumps(report.to_dict())}")
            return

        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop_event.set)

        await app.scheduler.start()
        await stop_event.wait()
        logger.info("Shutdown requested")
    finally:
        # Submitted sends must record before the store closes, also on Ctrl-C
        await app.scheduler.stop()
        logger.info(f"Scheduler stats: {app.scheduler.get_stats()}")
        await app.close()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Alert Cloud Foundry org managers when memory quota runs low")
    parser.add_argument("--once", action="store_true", help="Run a single evaluation pass and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Evaluate and log messages without sending them or writing throttle state",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args(argv)

    try:
        settings = load_settings()
        configure_logging(settings.log.level, args.verbose, settings.log.verbose_http)
        settings.check_ready()
    except ConfigurationError as e:
        configure_logging("ERROR")
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    if args.dry_run:
        logger.info("=== DRY RUN MODE ===")

    try:
        asyncio.run(run(settings, once=args.once, dry_run=args.dry_run))
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
