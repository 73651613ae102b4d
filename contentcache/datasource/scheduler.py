"""
Cache janitor - periodically prunes long-dead cache entries.

Entries without auto-refresh (detail records, images) are only evicted by
a strict read. The janitor drops those that expired more than a grace
period ago so memory stays bounded, while recently-expired entries remain
available for stale fallback.
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from contentcache.services.cache import TTLCache
from contentcache.utils import safe_func_wrapper


class CacheJanitor:
    """Interval job pruning a :class:`TTLCache`."""

    JOB_ID = "cache_prune_job"

    def __init__(
        self,
        cache: TTLCache,
        interval_minutes: int = 30,
        grace_seconds: float = 24 * 60 * 60,
    ):
        self.cache = cache
        self.interval_minutes = interval_minutes
        self.grace_seconds = grace_seconds
        self.scheduler = AsyncIOScheduler()
        self._is_running = False

    @safe_func_wrapper
    async def prune_job(self) -> int:
        """Prune task."""
        removed = self.cache.prune_expired(self.grace_seconds)
        if removed:
            logger.info(f"Cache janitor pruned {removed} expired entries")
        return removed

    def start(self) -> None:
        """Start the scheduler. Needs a running event loop."""
        if self._is_running:
            logger.warning("Cache janitor is already running")
            return

        self.scheduler.add_job(
            self.prune_job,
            trigger="interval",
            minutes=self.interval_minutes,
            id=self.JOB_ID,
            name="Cache Janitor",
            replace_existing=True,
        )

        self.scheduler.start()
        self._is_running = True

        logger.info(
            f"Cache janitor started: pruning every {self.interval_minutes} minutes"
        )

    def stop(self) -> None:
        """Stop the scheduler."""
        if not self._is_running:
            logger.warning("Cache janitor is not running")
            return

        self.scheduler.shutdown(wait=False)
        self._is_running = False
        logger.info("Cache janitor stopped")

    def is_running(self) -> bool:
        return self._is_running
