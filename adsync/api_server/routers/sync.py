"""
Sync trigger and status endpoints.
"""

from fastapi import APIRouter, Depends

from adsync.api_server.dependencies import ServiceContainer, get_services, get_sync_service
from adsync.api_server.services.sync_service import SyncRun, SyncService
from adsync.common.logger import get_logger
from adsync.models import EntityType
from adsync.schemas.request import SyncTriggerRequest
from adsync.schemas.response import (
    SyncRecordOut,
    SyncStatusResponse,
    SyncSummary,
    SyncTriggerResponse,
    SyncTypeInfo,
    SyncTypesResponse,
)

logger = get_logger(__name__)
router = APIRouter()

SYNC_TYPES = [
    SyncTypeInfo(type="full", description="All entity types, in dependency order"),
    SyncTypeInfo(type="networks", description="Networks"),
    SyncTypeInfo(type="advertisers", description="Advertisers per network", scoped_by="network_id"),
    SyncTypeInfo(type="campaigns", description="Campaigns per advertiser", scoped_by="advertiser_id"),
    SyncTypeInfo(type="advertisements", description="Advertisements per network", scoped_by="network_id"),
    SyncTypeInfo(type="zones", description="Zones per network", scoped_by="network_id"),
]


def _trigger_response(run: SyncRun) -> SyncTriggerResponse:
    record = run.record
    return SyncTriggerResponse(
        sync_id=record.id,
        type=record.entity_type,
        entity_id=record.entity_id,
        summary=SyncSummary(**run.total.as_dict()),
        result={name: result.as_dict() for name, result in run.results.items()},
        started_at=record.started_at,
        completed_at=record.completed_at,
    )


@router.post("/trigger", response_model=SyncTriggerResponse)
async def trigger_sync(
    body: SyncTriggerRequest,
    sync_service: SyncService = Depends(get_sync_service),
) -> SyncTriggerResponse:
    """
    Run a sync now and wait for it.

    409 when an overlapping sync is active and ``force`` is not set.
    """
    run = await sync_service.trigger_sync(body.type, body.entity_id, force=body.force)
    return _trigger_response(run)


@router.get("/trigger", response_model=SyncTypesResponse)
async def list_sync_types(
    sync_service: SyncService = Depends(get_sync_service),
) -> SyncTypesResponse:
    return SyncTypesResponse(types=SYNC_TYPES, active_syncs=sync_service.get_active_syncs())


@router.post("/initialize", response_model=SyncTriggerResponse)
async def force_initialization(
    services: ServiceContainer = Depends(get_services),
) -> SyncTriggerResponse:
    """Re-run the bootstrap sequence regardless of cache contents."""
    run = await services.init_service.force_initialization()
    return _trigger_response(run)


@router.get("/status", response_model=SyncStatusResponse)
async def sync_status(
    services: ServiceContainer = Depends(get_services),
) -> SyncStatusResponse:
    """Guard state, open and recent ledger records, and cache counts."""
    ledger = services.repositories.sync_metadata
    init_status = await services.init_service.get_initialization_status()

    active_records = await ledger.get_active_syncs()
    latest_full = await ledger.get_latest_sync(EntityType.FULL)
    history = await ledger.get_history(limit=10)

    return SyncStatusResponse(
        is_active=services.sync_service.is_sync_active() or bool(active_records),
        is_initialized=init_status.is_initialized,
        is_initializing=init_status.is_initializing,
        active_syncs=services.sync_service.get_active_syncs(),
        active_records=[SyncRecordOut.model_validate(r) for r in active_records],
        last_full_sync=SyncRecordOut.model_validate(latest_full) if latest_full else None,
        recent_syncs=[SyncRecordOut.model_validate(r) for r in history],
        record_counts=init_status.record_counts,
        background=services.queue.status(),
    )
