"""
Repository layer over the local cache.

Modules:
    base           – BaseRepository / SyncedEntityRepository
    entities       – Network, Advertiser, Campaign, Advertisement, Zone
    sync_metadata  – Sync ledger
    registry       – Repositories bundle
"""

from adsync.repositories.base import BaseRepository, SyncedEntityRepository
from adsync.repositories.entities import (
    AdvertisementRepository,
    AdvertiserRepository,
    CampaignRepository,
    NetworkRepository,
    ZoneRepository,
)
from adsync.repositories.registry import Repositories
from adsync.repositories.sync_metadata import SyncMetadataRepository

__all__ = [
    "BaseRepository",
    "SyncedEntityRepository",
    "NetworkRepository",
    "AdvertiserRepository",
    "CampaignRepository",
    "AdvertisementRepository",
    "ZoneRepository",
    "SyncMetadataRepository",
    "Repositories",
]
