"""
Database models for the AdSync local cache.
"""

from adsync.models.base import (
    AD_TYPES,
    ADVERTISEMENT_STATUSES,
    ADVERTISER_STATUSES,
    CAMPAIGN_STATUSES,
    NETWORK_STATUSES,
    ZONE_STATUSES,
    AdType,
    Base,
    CampaignStatus,
    EntityStatus,
    EntityType,
    SyncStatus,
    SyncTrackedMixin,
    TimestampMixin,
    TriggerSource,
)
from adsync.models.entities import (
    Advertisement,
    Advertiser,
    Campaign,
    Network,
    Zone,
)
from adsync.models.sync_metadata import SyncMetadata

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "SyncTrackedMixin",
    # Enums
    "EntityStatus",
    "CampaignStatus",
    "AdType",
    "EntityType",
    "SyncStatus",
    "TriggerSource",
    "NETWORK_STATUSES",
    "ADVERTISER_STATUSES",
    "CAMPAIGN_STATUSES",
    "ADVERTISEMENT_STATUSES",
    "ZONE_STATUSES",
    "AD_TYPES",
    # Models
    "Network",
    "Advertiser",
    "Campaign",
    "Advertisement",
    "Zone",
    "SyncMetadata",
]
