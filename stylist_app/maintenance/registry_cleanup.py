"""
Registry Cleanup Worker

Deletes generated images older than a cutoff from storage and drops
them from the registry, so abandoned edits don't pile up on the CDN.

Architecture:
- Runs once, or periodically until SIGINT/SIGTERM
- Storage and registry are injected (strategy pattern)
"""

import argparse
import asyncio
import signal
import sys
from typing import Optional, Tuple

from stylist_app.config import settings
from stylist_app.observability.logger import append_log
from stylist_app.storage.registry import GeneratedImageRegistry
from stylist_app.storage.strategies import ImageStorageStrategy

DEFAULT_MAX_AGE_HOURS = 24.0
DEFAULT_INTERVAL_SECONDS = 3600


class RegistryCleanupWorker:
    """
    Periodic purge of expired generated images.
    """

    def __init__(
        self,
        registry: GeneratedImageRegistry,
        storage: ImageStorageStrategy,
        max_age_hours: float = DEFAULT_MAX_AGE_HOURS,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS
    ):
        """
        Initialize worker with dependencies.

        Args:
            registry: Registry of generated images
            storage: Storage the images live in
            max_age_hours: Images older than this are deleted
            interval_seconds: Pause between runs in loop mode
        """
        self.registry = registry
        self.storage = storage
        self.max_age_hours = max_age_hours
        self.interval_seconds = interval_seconds
        self.running = False
        self.runs = 0
        self.removed_total = 0

    async def run_once(self, now: Optional[int] = None) -> Tuple[int, int]:
        """Purge once; returns (removed, kept)"""
        removed, kept = await self.registry.purge_older_than(self.max_age_hours, self.storage, now=now)
        self.runs += 1
        self.removed_total += removed
        print(f"🧹 Removed {removed} images, kept {kept}. Total removed: {self.removed_total}")
        return removed, kept

    async def start(self):
        """Start the worker loop"""
        self.running = True
        print("🚀 Registry cleanup worker started")
        print(f"⏳ Max age: {self.max_age_hours}h")
        print(f"⏰ Interval: {self.interval_seconds}s")

        # Setup signal handlers
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        while self.running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                print("Worker task cancelled.")
                break
            except OSError as e:
                print(f"❌ Cleanup run failed: {e}")
                await append_log("registry.cleanup_error", error=str(e))

            # Sleep in short steps so a stop request is honoured quickly
            waited = 0.0
            while self.running and waited < self.interval_seconds:
                await asyncio.sleep(1)
                waited += 1

        print("🛑 Registry cleanup worker stopped")

    def _signal_handler(self, signum, frame):
        """Handle signals for graceful shutdown"""
        print(f"\nReceived signal {signum}. Shutting down gracefully...")
        self.stop()

    def stop(self):
        """Stop the worker"""
        self.running = False


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Delete generated images older than a cutoff")
    parser.add_argument("hours", nargs="?", type=float, default=DEFAULT_MAX_AGE_HOURS,
                        help="maximum image age in hours (default: 24)")
    parser.add_argument("--once", action="store_true", help="purge once and exit")
    parser.add_argument("--interval", type=float, default=DEFAULT_INTERVAL_SECONDS,
                        help="seconds between runs in loop mode (default: 3600)")
    return parser.parse_args(argv)


async def main(argv=None):
    """
    Main entry point for the registry cleanup worker.

    Usage:
        python -m stylist_app.maintenance.registry_cleanup [hours] [--once]
    """
    args = parse_args(argv)

    print("=" * 60)
    print("🔧 AI Stylist - Registry Cleanup Worker")
    print("=" * 60)
    print(f"Environment: {settings.environment}")
    print(f"Registry: {settings.registry_path}")
    print("=" * 60)

    from stylist_app.storage.factory import StorageFactory
    storage = StorageFactory.create()
    registry = GeneratedImageRegistry(settings.registry_path)

    worker = RegistryCleanupWorker(
        registry=registry,
        storage=storage,
        max_age_hours=args.hours,
        interval_seconds=args.interval,
    )

    try:
        if args.once:
            await worker.run_once()
        else:
            await worker.start()
    except KeyboardInterrupt:
        print("\n⚠️  Interrupted by user")
    except Exception as e:
        print(f"❌ Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
