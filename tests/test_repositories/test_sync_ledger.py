"""
Tests for the sync metadata ledger.
"""

import asyncio

import pytest

from adsync.common.exceptions import RecordNotFoundError
from adsync.models import EntityType, SyncStatus, TriggerSource
from adsync.repositories import Repositories


@pytest.mark.asyncio
async def test_create_sync_record(repositories: Repositories) -> None:
    """Test a new record starts in progress with zeroed counters."""
    ledger = repositories.sync_metadata

    record = await ledger.create_sync_record(
        EntityType.NETWORKS,
        TriggerSource.MANUAL,
        details={"reason": "entity_sync"},
    )

    assert record.id is not None
    assert record.entity_type == "networks"
    assert record.status == SyncStatus.IN_PROGRESS.value
    assert record.triggered_by == "manual"
    assert record.completed_at is None
    assert record.records_processed == 0
    assert record.details == {"reason": "entity_sync"}
    assert record.duration_ms is None


@pytest.mark.asyncio
async def test_sync_version_per_entity_type(repositories: Repositories) -> None:
    """Test ledger generations count separately per entity type."""
    ledger = repositories.sync_metadata

    first = await ledger.create_sync_record("networks", "manual")
    second = await ledger.create_sync_record("networks", "auto")
    other = await ledger.create_sync_record("zones", "manual")

    assert (first.sync_version, second.sync_version) == (1, 2)
    assert other.sync_version == 1


@pytest.mark.asyncio
async def test_concurrent_records_get_distinct_versions(repositories: Repositories) -> None:
    """Test records opened together for one type never share a version."""
    ledger = repositories.sync_metadata

    records = await asyncio.gather(
        *(ledger.create_sync_record("advertisers", "auto") for _ in range(3))
    )

    assert sorted(r.sync_version for r in records) == [1, 2, 3]


@pytest.mark.asyncio
async def test_invalid_enums_rejected(repositories: Repositories) -> None:
    """Test unknown types and trigger sources are refused."""
    ledger = repositories.sync_metadata

    with pytest.raises(ValueError):
        await ledger.create_sync_record("creatives", "manual")
    with pytest.raises(ValueError):
        await ledger.create_sync_record("networks", "cron")


@pytest.mark.asyncio
async def test_complete_sets_counts_and_completed_at(repositories: Repositories) -> None:
    """Test completing a record stores counters and a duration."""
    ledger = repositories.sync_metadata
    record = await ledger.create_sync_record("advertisers", "manual", entity_id=42)

    done = await ledger.update_sync_status(
        record.id,
        SyncStatus.COMPLETED,
        records_processed=3,
        records_created=2,
        records_updated=1,
    )

    assert done.status == "completed"
    assert done.records_processed == 3
    assert done.records_created == 2
    assert done.records_updated == 1
    assert done.completed_at is not None
    assert done.duration_ms is not None
    assert done.duration_ms >= 0
    assert done.entity_id == 42


@pytest.mark.asyncio
async def test_completed_at_written_once(repositories: Repositories) -> None:
    """Test a second terminal transition keeps the first completion time."""
    ledger = repositories.sync_metadata
    record = await ledger.create_sync_record("networks", "manual")

    await ledger.update_sync_status(record.id, "failed", error_message="boom")
    failed = await ledger.find_by_id(record.id)
    await ledger.update_sync_status(record.id, "failed", error_message="boom again")
    again = await ledger.find_by_id(record.id)

    assert again.completed_at == failed.completed_at
    assert again.error_message == "boom again"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "terminal,target",
    [
        ("completed", "in_progress"),
        ("failed", "pending"),
        ("completed", "failed"),
    ],
)
async def test_terminal_record_cannot_change_status(
    repositories: Repositories, terminal: str, target: str
) -> None:
    """Test a finished record keeps its status and completion time."""
    ledger = repositories.sync_metadata
    record = await ledger.create_sync_record("networks", "manual")
    await ledger.update_sync_status(record.id, terminal)

    with pytest.raises(ValueError, match="already"):
        await ledger.update_sync_status(record.id, target)

    stored = await ledger.find_by_id(record.id)
    assert stored.status == terminal
    assert stored.completed_at is not None


@pytest.mark.asyncio
async def test_details_are_merged(repositories: Repositories) -> None:
    """Test details updates merge key by key."""
    ledger = repositories.sync_metadata
    record = await ledger.create_sync_record(
        "full", "initialization", details={"reason": "initial_data_load"}
    )

    updated = await ledger.update_sync_status(
        record.id, SyncStatus.COMPLETED, details={"results": {"networks": {"created": 2}}}
    )

    assert updated.details == {
        "reason": "initial_data_load",
        "results": {"networks": {"created": 2}},
    }

    reloaded = await ledger.find_by_id(record.id)
    assert reloaded.details["reason"] == "initial_data_load"


@pytest.mark.asyncio
async def test_update_rejects_unknown_fields(repositories: Repositories) -> None:
    """Test only counters, error message and details are writable."""
    ledger = repositories.sync_metadata
    record = await ledger.create_sync_record("networks", "manual")

    with pytest.raises(ValueError):
        await ledger.update_sync_status(record.id, "completed", entity_type="zones")


@pytest.mark.asyncio
async def test_update_missing_record(repositories: Repositories) -> None:
    """Test updating an unknown record raises."""
    with pytest.raises(RecordNotFoundError):
        await repositories.sync_metadata.update_sync_status(999, "completed")


@pytest.mark.asyncio
async def test_latest_active_and_history(repositories: Repositories) -> None:
    """Test the ledger queries behind the status surface."""
    ledger = repositories.sync_metadata

    first_full = await ledger.create_sync_record("full", "manual")
    await ledger.update_sync_status(first_full.id, "completed")
    second_full = await ledger.create_sync_record("full", "auto")
    await ledger.update_sync_status(second_full.id, "completed")
    failed = await ledger.create_sync_record("networks", "manual")
    await ledger.update_sync_status(failed.id, "failed", error_message="upstream down")
    orphan = await ledger.create_sync_record("zones", "auto")

    latest = await ledger.get_latest_sync(EntityType.FULL)
    assert latest.id == second_full.id

    assert await ledger.get_latest_sync("networks") is None

    active = await ledger.get_active_syncs()
    assert [r.id for r in active] == [orphan.id]

    history = await ledger.get_history(limit=2)
    assert [r.id for r in history] == [failed.id, second_full.id]
    assert all(r.status in ("completed", "failed") for r in history)
