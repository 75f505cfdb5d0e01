"""
Tests for the background sync queue and the auto-sync scheduler.
"""

import httpx
import pytest

from adsync.api_server.services.background import BackgroundSyncQueue, SyncJob
from adsync.api_server.services.scheduler import AUTO_SYNC_JOB_ID, AutoSyncScheduler
from adsync.api_server.services.sync_service import SyncService
from adsync.models import EntityType
from adsync.repositories import Repositories


@pytest.mark.asyncio
async def test_job_runs_and_is_recorded_as_auto(
    upstream, sync_service: SyncService, repositories: Repositories
) -> None:
    """Test a queued job runs through the ledger with triggered_by=auto."""
    upstream.add("networks", [{"id": 1, "name": "Alpha"}])
    queue = BackgroundSyncQueue(sync_service, maxsize=4)
    queue.start()
    try:
        assert queue.enqueue(SyncJob(EntityType.NETWORKS))
        await queue.join()
    finally:
        await queue.stop()

    status = queue.status()
    assert status.enqueued == 1
    assert status.completed == 1
    assert status.failed == 0
    assert not status.running

    record = await repositories.sync_metadata.find_one()
    assert record.triggered_by == "auto"
    assert record.status == "completed"
    assert await repositories.networks.count() == 1


@pytest.mark.asyncio
async def test_pending_duplicates_coalesced(sync_service: SyncService) -> None:
    """Test an identical pending job is not queued twice."""
    queue = BackgroundSyncQueue(sync_service, maxsize=4)

    assert queue.enqueue(SyncJob(EntityType.ADVERTISERS, 1))
    assert not queue.enqueue(SyncJob(EntityType.ADVERTISERS, 1))
    assert queue.enqueue(SyncJob(EntityType.ADVERTISERS, 2))

    status = queue.status()
    assert status.size == 2
    assert status.enqueued == 2
    assert status.dropped == 0


@pytest.mark.asyncio
async def test_full_queue_drops(sync_service: SyncService) -> None:
    """Test jobs beyond capacity are dropped and counted."""
    queue = BackgroundSyncQueue(sync_service, maxsize=1)

    assert queue.enqueue(SyncJob(EntityType.NETWORKS))
    assert not queue.enqueue(SyncJob(EntityType.ZONES))

    status = queue.status()
    assert status.size == 1
    assert status.capacity == 1
    assert status.dropped == 1


@pytest.mark.asyncio
async def test_failed_job_counted(upstream, sync_service: SyncService) -> None:
    """Test a failing job is counted and the worker keeps going."""
    upstream.fail("networks", lambda request: httpx.ConnectError("refused", request=request))
    upstream.add("zones", [{"id": 5000, "name": "Header"}], network_id=1)
    queue = BackgroundSyncQueue(sync_service)
    queue.start()
    try:
        queue.enqueue(SyncJob(EntityType.NETWORKS))
        queue.enqueue(SyncJob(EntityType.ZONES, 1))
        await queue.join()
        assert queue.running
    finally:
        await queue.stop()

    status = queue.status()
    assert status.failed == 1
    assert status.completed == 1
    assert status.last_error.startswith("networks-all")


def test_job_key() -> None:
    """Test job keys read like guard keys."""
    assert str(SyncJob(EntityType.FULL)) == "full-all"
    assert str(SyncJob(EntityType.CAMPAIGNS, 7)) == "campaigns-7"


@pytest.mark.asyncio
async def test_scheduler_enqueues_full_sync(sync_service: SyncService) -> None:
    """Test the scheduled job body queues one full sync."""
    queue = BackgroundSyncQueue(sync_service)
    scheduler = AutoSyncScheduler(queue, interval_minutes=15)

    await scheduler.enqueue_full_sync()
    await scheduler.enqueue_full_sync()

    assert queue.status().size == 1
    assert queue.status().enqueued == 1


@pytest.mark.asyncio
async def test_scheduler_lifecycle(sync_service: SyncService) -> None:
    """Test the interval job is registered only when enabled."""
    queue = BackgroundSyncQueue(sync_service)

    disabled = AutoSyncScheduler(queue, interval_minutes=0)
    disabled.start()
    assert not disabled.scheduler.running
    disabled.stop()

    enabled = AutoSyncScheduler(queue, interval_minutes=30)
    enabled.start()
    try:
        assert enabled.scheduler.running
        assert enabled.scheduler.get_job(AUTO_SYNC_JOB_ID) is not None
    finally:
        enabled.stop()
