"""
Periodic full resync.

An APScheduler interval job enqueues a full sync on the background queue
every ``sync.auto_sync_interval_minutes``; 0 disables it.
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from adsync.api_server.services.background import BackgroundSyncQueue, SyncJob
from adsync.common.logger import get_logger
from adsync.models import EntityType

logger = get_logger(__name__)

AUTO_SYNC_JOB_ID = "auto_full_sync"


class AutoSyncScheduler:
    """Owns one ``AsyncIOScheduler`` for the app lifespan."""

    def __init__(self, queue: BackgroundSyncQueue, interval_minutes: int):
        self.queue = queue
        self.interval_minutes = interval_minutes
        self.scheduler = AsyncIOScheduler()

    @property
    def enabled(self) -> bool:
        return self.interval_minutes > 0

    async def enqueue_full_sync(self) -> None:
        """Scheduled job body."""
        if not self.queue.enqueue(SyncJob(EntityType.FULL)):
            logger.info("Scheduled full sync not queued (pending or queue full)")

    def start(self) -> None:
        """Configure and start the scheduler."""
        if not self.enabled:
            logger.info("Auto sync disabled via config")
            return

        self.scheduler.add_job(
            self.enqueue_full_sync,
            "interval",
            minutes=self.interval_minutes,
            id=AUTO_SYNC_JOB_ID,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        self.scheduler.start()
        logger.info("Auto sync scheduler started", interval_minutes=self.interval_minutes)

    def stop(self) -> None:
        """Shutdown the scheduler gracefully."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Auto sync scheduler stopped")
