"""
Bounded background sync queue.

The read path enqueues a backfill when it had to fall back to the upstream
API. One worker task drains the queue sequentially; identical pending jobs
are coalesced and a full queue drops the new job. Outcomes are counted so
the status surface and Prometheus can see them.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from adsync.api_server.middleware.metrics import (
    record_background_job,
    set_background_queue_depth,
)
from adsync.api_server.services.sync_service import SyncService
from adsync.common.logger import LoggerMixin
from adsync.models import EntityType, TriggerSource
from adsync.schemas.response import BackgroundQueueStatus


@dataclass(frozen=True)
class SyncJob:
    entity_type: EntityType
    scope_id: int | None = None

    def __str__(self) -> str:
        return f"{self.entity_type.value}-{self.scope_id or 'all'}"


class BackgroundSyncQueue(LoggerMixin):
    """Single-worker queue of ``SyncJob``s recorded with ``triggered_by=auto``."""

    def __init__(self, sync_service: SyncService, maxsize: int = 32):
        self.sync_service = sync_service
        self.maxsize = maxsize
        self._queue: asyncio.Queue[SyncJob] = asyncio.Queue(maxsize=maxsize)
        self._pending: set[SyncJob] = set()
        self._worker: asyncio.Task[None] | None = None

        self.enqueued = 0
        self.completed = 0
        self.failed = 0
        self.dropped = 0
        self.last_error: str | None = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        if not self.running:
            self._worker = asyncio.create_task(self._run(), name="background-sync")
            self.logger.info("Background sync worker started", capacity=self.maxsize)

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        self.logger.info("Background sync worker stopped", pending=self._queue.qsize())

    def enqueue(self, job: SyncJob) -> bool:
        """
        Queue ``job`` without waiting.

        Returns False when an identical job is already pending or the queue
        is full (the job is dropped).
        """
        if job in self._pending:
            return False
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            self.dropped += 1
            record_background_job(job.entity_type.value, "dropped")
            self.logger.warning("Background sync queue full, dropping job", job=str(job))
            return False

        self._pending.add(job)
        self.enqueued += 1
        set_background_queue_depth(self._queue.qsize())
        self.logger.info("Background sync queued", job=str(job))
        return True

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            job = await self._queue.get()
            self._pending.discard(job)
            set_background_queue_depth(self._queue.qsize())
            try:
                await self._execute(job)
            finally:
                self._queue.task_done()

    async def _execute(self, job: SyncJob) -> None:
        try:
            await self.sync_service.run_tracked(job.entity_type, job.scope_id, TriggerSource.AUTO)
        except Exception as e:
            self.failed += 1
            self.last_error = f"{job}: {e}"
            record_background_job(job.entity_type.value, "failed")
            self.logger.error("Background sync failed", job=str(job), error=str(e))
            return
        self.completed += 1
        record_background_job(job.entity_type.value, "completed")

    def status(self) -> BackgroundQueueStatus:
        return BackgroundQueueStatus(
            running=self.running,
            size=self._queue.qsize(),
            capacity=self.maxsize,
            enqueued=self.enqueued,
            completed=self.completed,
            failed=self.failed,
            dropped=self.dropped,
            last_error=self.last_error,
        )
