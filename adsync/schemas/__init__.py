"""
Pydantic schemas for upstream records and the dashboard API.
"""

from adsync.schemas.request import SyncTriggerRequest
from adsync.schemas.response import (
    AdvertisementOut,
    AdvertiserOut,
    BackgroundQueueStatus,
    CampaignOut,
    CampaignPerformance,
    CampaignStats,
    DashboardSummary,
    EntityListResponse,
    EntityStats,
    ErrorResponse,
    HealthResponse,
    InitializationStatus,
    NetworkOut,
    SyncRecordOut,
    SyncStatusResponse,
    SyncSummary,
    SyncTriggerResponse,
    SyncTypeInfo,
    SyncTypesResponse,
    ZoneOut,
)
from adsync.schemas.upstream import (
    UPSTREAM_SCHEMAS,
    UpstreamAdvertisement,
    UpstreamAdvertiser,
    UpstreamCampaign,
    UpstreamNetwork,
    UpstreamRecord,
    UpstreamZone,
)

__all__ = [
    # Request
    "SyncTriggerRequest",
    # Response
    "NetworkOut",
    "AdvertiserOut",
    "CampaignOut",
    "CampaignPerformance",
    "AdvertisementOut",
    "ZoneOut",
    "EntityListResponse",
    "EntityStats",
    "CampaignStats",
    "DashboardSummary",
    "SyncSummary",
    "SyncTriggerResponse",
    "SyncTypeInfo",
    "SyncTypesResponse",
    "SyncRecordOut",
    "SyncStatusResponse",
    "BackgroundQueueStatus",
    "InitializationStatus",
    "HealthResponse",
    "ErrorResponse",
    # Upstream
    "UPSTREAM_SCHEMAS",
    "UpstreamRecord",
    "UpstreamNetwork",
    "UpstreamAdvertiser",
    "UpstreamCampaign",
    "UpstreamAdvertisement",
    "UpstreamZone",
]
