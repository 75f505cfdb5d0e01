"""
Tests for the cold-start bootstrap.
"""

import asyncio

import httpx
import pytest

from adsync.api_server.services.initialization_service import InitializationService
from adsync.api_server.services.sync_service import SyncService
from adsync.common.exceptions import InitializationInProgressError, UpstreamUnavailableError
from adsync.repositories import Repositories


@pytest.fixture
def init_service(sync_service: SyncService, repositories: Repositories) -> InitializationService:
    return InitializationService(sync_service, repositories)


@pytest.mark.asyncio
async def test_empty_store_bootstraps(
    seeded_upstream, init_service: InitializationService, repositories: Repositories
) -> None:
    """Test an empty store runs a full sync tagged as initialization."""
    assert await init_service.is_store_empty()

    run = await init_service.ensure_initialized()

    assert run is not None
    assert run.record.entity_type == "full"
    assert run.record.triggered_by == "initialization"
    assert run.record.status == "completed"
    assert run.record.details["reason"] == "initial_data_load"
    assert await repositories.campaigns.count() == 3
    assert not await init_service.is_store_empty()
    assert not init_service.is_initializing


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_bootstrap(
    seeded_upstream, init_service: InitializationService, repositories: Repositories
) -> None:
    """Test concurrent reads on an empty store start exactly one bootstrap."""
    gate = seeded_upstream.hold("networks")

    callers = [asyncio.create_task(init_service.ensure_initialized()) for _ in range(5)]
    await asyncio.sleep(0.1)
    assert init_service.is_initializing
    gate.set()
    runs = await asyncio.gather(*callers)

    assert len({run.record.id for run in runs}) == 1
    assert len(seeded_upstream.calls_to("networks")) == 1
    records = await repositories.sync_metadata.find_all({"triggered_by": "initialization"})
    assert len(records) == 1


@pytest.mark.asyncio
async def test_non_empty_store_is_noop(
    upstream, init_service: InitializationService, repositories: Repositories
) -> None:
    """Test a populated store is left alone."""
    await repositories.networks.create({"id": 1, "name": "Alpha"})

    assert await init_service.ensure_initialized() is None
    assert upstream.calls == []
    assert await repositories.sync_metadata.count() == 0


@pytest.mark.asyncio
async def test_only_advertisements_counts_as_empty(
    upstream, init_service: InitializationService, repositories: Repositories
) -> None:
    """Test emptiness looks at networks, advertisers and campaigns only."""
    await repositories.advertisements.create({"id": 1, "name": "Orphan creative"})

    assert await init_service.is_store_empty()


@pytest.mark.asyncio
async def test_second_direct_bootstrap_rejected(
    seeded_upstream, init_service: InitializationService
) -> None:
    """Test a bootstrap bypassing single-flight conflicts with the running one."""
    gate = seeded_upstream.hold("networks")
    first = asyncio.create_task(init_service.perform_initialization())
    await asyncio.sleep(0.05)

    with pytest.raises(InitializationInProgressError):
        await init_service.perform_initialization()

    gate.set()
    run = await first
    assert run.record.status == "completed"


@pytest.mark.asyncio
async def test_failure_clears_state_and_propagates(
    upstream, init_service: InitializationService, repositories: Repositories
) -> None:
    """Test a failed bootstrap is recorded and a later call retries."""
    upstream.fail("networks", lambda request: httpx.ConnectError("refused", request=request))

    with pytest.raises(UpstreamUnavailableError):
        await init_service.ensure_initialized()

    assert not init_service.is_initializing
    failed = await repositories.sync_metadata.find_one({"status": "failed"})
    assert failed.triggered_by == "initialization"

    upstream.add("networks", [{"id": 1, "name": "Alpha"}])
    run = await init_service.ensure_initialized()
    assert run.record.status == "completed"
    assert await repositories.networks.count() == 1


@pytest.mark.asyncio
async def test_optional_stage_failure_tolerated(
    seeded_upstream, init_service: InitializationService, repositories: Repositories
) -> None:
    """Test zone failures do not fail the bootstrap."""
    original = init_service.sync_service.sync_zones

    async def broken_zones(network_id=None):
        raise UpstreamUnavailableError("zones down")

    init_service.sync_service.sync_zones = broken_zones
    try:
        run = await init_service.ensure_initialized()
    finally:
        init_service.sync_service.sync_zones = original

    assert run.record.status == "completed"
    assert run.results["zones"].processed == 0
    assert await repositories.campaigns.count() == 3


@pytest.mark.asyncio
async def test_force_initialization_on_populated_store(
    seeded_upstream, init_service: InitializationService, repositories: Repositories
) -> None:
    """Test a forced bootstrap runs even with data present."""
    await repositories.networks.create({"id": 1, "name": "Old name"})

    run = await init_service.force_initialization()

    assert run.record.triggered_by == "initialization"
    assert (await repositories.networks.find_by_id(1)).name == "Alpha Network"


@pytest.mark.asyncio
async def test_initialization_status(
    seeded_upstream, init_service: InitializationService
) -> None:
    """Test the status report before and after bootstrap."""
    before = await init_service.get_initialization_status()
    assert not before.is_initialized
    assert before.last_initialization is None

    await init_service.ensure_initialized()

    after = await init_service.get_initialization_status()
    assert after.is_initialized
    assert not after.is_initializing
    assert after.last_initialization is not None
    assert after.record_counts["networks"] == 2
    assert after.record_counts["zones"] == 1
