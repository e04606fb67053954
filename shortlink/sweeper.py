"""Periodic purge of expired links.

The resolver already refuses expired links on every access, so the sweeper
is cost control only: it bounds the footprint of links that expired and were
never requested again. Its delete is set-based and idempotent, so any number
of instances may run it concurrently.

Run as a worker::

    python -m shortlink.sweeper            # loop forever
    python -m shortlink.sweeper --once     # single pass, exit
"""

import argparse
import asyncio
import logging
import signal
import sys

from prometheus_client import Counter

from shortlink.clock import Clock, utcnow
from shortlink.config import get_settings
from shortlink.database import Database
from shortlink.store import LinkStore

__all__ = ["ExpirationSweeper"]

SWEPT_LINKS_TOTAL = Counter(
    "shortlink_swept_links_total",
    "Expired links deleted by the sweeper",
)


class ExpirationSweeper:
    """Deletes every link whose logical expiry has passed."""

    def __init__(self, store: LinkStore, logger: logging.Logger, clock: Clock = utcnow):
        self.store = store
        self.logger = logger
        self.clock = clock

    async def sweep_once(self) -> int:
        deleted = await self.store.delete_expired_before(self.clock())
        SWEPT_LINKS_TOTAL.inc(deleted)
        self.logger.info(f"Sweeper removed {deleted} expired links")
        return deleted

    async def run_forever(self, interval_seconds: int) -> None:
        """Run continuous sweep loop."""
        self.logger.info(f"Starting expiration sweeps every {interval_seconds}s")

        while True:
            try:
                await self.sweep_once()
            except Exception as e:
                self.logger.error(f"Expiration sweep error: {e}")
            await asyncio.sleep(interval_seconds)


async def main(once: bool = False) -> None:
    """Standalone sweeper worker."""
    settings = get_settings()

    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    logger = logging.getLogger("shortlink.sweeper")

    database = Database.from_settings(settings)
    store = LinkStore(database.primary, database.replica, timeout=settings.STORE_TIMEOUT_SECONDS)
    sweeper = ExpirationSweeper(store, logger)

    try:
        if once:
            await sweeper.sweep_once()
        else:
            await sweeper.run_forever(settings.SWEEPER_INTERVAL_SECONDS)
    finally:
        await database.dispose()


def signal_handler(signum, frame):
    """Handle shutdown signals."""
    print(f"\nReceived signal {signum}, shutting down...")
    sys.exit(0)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Purge expired short links")
    parser.add_argument("--once", action="store_true", help="run a single sweep and exit")
    args = parser.parse_args()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    asyncio.run(main(once=args.once))
