"""
API response schemas for the dashboard read path and the sync surfaces.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# ==================== Entities ====================


class EntityOut(BaseModel):
    """Fields shared by every cached entity as served to the dashboard."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Upstream entity id")
    name: str = Field(..., description="Display name")
    status: str = Field("active", description="Entity status")
    created_at: datetime | None = Field(None, description="Creation time")


class NetworkOut(EntityOut):
    description: str = ""


class AdvertiserOut(EntityOut):
    network_id: int | None = None
    email: str = ""
    phone: str = ""


class CampaignOut(EntityOut):
    advertiser_id: int | None = None
    network_id: int | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    budget: float = 0.0
    spent: float = 0.0
    impressions: int = 0
    clicks: int = 0
    ctr: float = 0.0


class AdvertisementOut(EntityOut):
    campaign_id: int | None = None
    advertiser_id: int | None = None
    network_id: int | None = None
    type: str = "banner"
    width: int = 0
    height: int = 0


class ZoneOut(EntityOut):
    network_id: int | None = None
    type: str = "banner"
    width: int = 0
    height: int = 0
    description: str = ""


DataSource = Literal["local", "upstream"]


class EntityListResponse(BaseModel):
    """List of entities plus where they were read from."""

    items: list[dict[str, Any]] = Field(default_factory=list, description="Serialized entities")
    count: int = Field(..., description="Number of entities returned")
    source: DataSource = Field(..., description="local cache or upstream fallback")


class CampaignPerformance(BaseModel):
    """Live delivery totals for one campaign."""

    campaign_id: int
    impressions: int = Field(0, description="Upstream views")
    clicks: int = 0
    ctr: float = Field(0.0, description="clicks / impressions * 100")
    spend: float = Field(0.0, description="Cached campaign spend; not reported by the records endpoint")


# ==================== Dashboard ====================


class EntityStats(BaseModel):
    total: int = 0
    active: int = 0


class CampaignStats(EntityStats):
    paused: int = 0
    total_spend: float = 0.0
    total_impressions: int = 0
    total_clicks: int = 0


class DashboardSummary(BaseModel):
    """Per-entity counts for the dashboard landing page."""

    networks: EntityStats = Field(default_factory=EntityStats)
    advertisers: EntityStats = Field(default_factory=EntityStats)
    campaigns: CampaignStats = Field(default_factory=CampaignStats)
    advertisements: EntityStats = Field(default_factory=EntityStats)
    zones: EntityStats = Field(default_factory=EntityStats)
    source: DataSource = "local"


# ==================== Sync ====================


class SyncSummary(BaseModel):
    processed: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0


class SyncTriggerResponse(BaseModel):
    """Outcome of a manually triggered sync."""

    success: bool = True
    sync_id: int = Field(..., description="Ledger record id")
    type: str = Field(..., description="Sync type that ran")
    entity_id: int | None = None
    summary: SyncSummary
    result: dict[str, Any] = Field(default_factory=dict, description="Per-stage results")
    started_at: datetime
    completed_at: datetime | None = None


class SyncTypeInfo(BaseModel):
    type: str
    description: str
    scoped_by: str | None = Field(None, description="Name of the accepted entity_id scope")


class SyncTypesResponse(BaseModel):
    types: list[SyncTypeInfo]
    active_syncs: list[str] = Field(default_factory=list)


class SyncRecordOut(BaseModel):
    """One ledger record."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    entity_type: str
    entity_id: int | None = None
    status: str
    started_at: datetime
    completed_at: datetime | None = None
    duration_ms: int | None = None
    records_processed: int = 0
    records_created: int = 0
    records_updated: int = 0
    records_deleted: int = 0
    error_message: str = ""
    triggered_by: str
    sync_version: int = 1


class BackgroundQueueStatus(BaseModel):
    running: bool = False
    size: int = 0
    capacity: int = 0
    enqueued: int = 0
    completed: int = 0
    failed: int = 0
    dropped: int = 0
    last_error: str | None = None


class InitializationStatus(BaseModel):
    is_initialized: bool
    is_initializing: bool
    last_initialization: datetime | None = None
    record_counts: dict[str, int] = Field(default_factory=dict)


class SyncStatusResponse(BaseModel):
    """Guard state, ledger history and cache counts."""

    is_active: bool
    is_initialized: bool
    is_initializing: bool
    active_syncs: list[str] = Field(default_factory=list, description="Held guard keys")
    active_records: list[SyncRecordOut] = Field(default_factory=list)
    last_full_sync: SyncRecordOut | None = None
    recent_syncs: list[SyncRecordOut] = Field(default_factory=list)
    record_counts: dict[str, int] = Field(default_factory=dict)
    background: BackgroundQueueStatus = Field(default_factory=BackgroundQueueStatus)


# ==================== Service ====================


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Service version")
    database: bool = Field(..., description="Database connection status")


class ErrorResponse(BaseModel):
    """Error response schema."""

    error: str = Field(..., description="Error category")
    message: str = Field(..., description="Error message")
    details: dict[str, Any] | None = Field(None, description="Error details")
    request_id: str | None = Field(None, description="Request identifier")

    model_config = {
        "json_schema_extra": {
            "example": {
                "error": "conflict",
                "message": "Sync already in progress: networks-all",
                "details": {"active_syncs": ["networks-all"]},
                "request_id": "0b6f3c1e-8f0a-4a57-9d1b-4c4a9f1f7e21",
            }
        }
    }
