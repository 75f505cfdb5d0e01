"""
One repository per table, built together over a shared database manager.
"""

from __future__ import annotations

from dataclasses import dataclass

from adsync.common.database import DatabaseManager
from adsync.models import EntityType
from adsync.repositories.base import SyncedEntityRepository
from adsync.repositories.entities import (
    AdvertisementRepository,
    AdvertiserRepository,
    CampaignRepository,
    NetworkRepository,
    ZoneRepository,
)
from adsync.repositories.sync_metadata import SyncMetadataRepository


@dataclass
class Repositories:
    networks: NetworkRepository
    advertisers: AdvertiserRepository
    campaigns: CampaignRepository
    advertisements: AdvertisementRepository
    zones: ZoneRepository
    sync_metadata: SyncMetadataRepository

    @classmethod
    def create(cls, database: DatabaseManager) -> "Repositories":
        return cls(
            networks=NetworkRepository(database),
            advertisers=AdvertiserRepository(database),
            campaigns=CampaignRepository(database),
            advertisements=AdvertisementRepository(database),
            zones=ZoneRepository(database),
            sync_metadata=SyncMetadataRepository(database),
        )

    def for_type(self, entity_type: EntityType | str) -> SyncedEntityRepository:
        """Entity repository for a sync type (not ``full``)."""
        entity_type = EntityType(entity_type)
        if entity_type is EntityType.FULL:
            raise ValueError("'full' has no single repository")
        return getattr(self, entity_type.value)

    async def record_counts(self) -> dict[str, int]:
        """``count()`` of every entity table, keyed by entity type."""
        counts = {}
        for entity_type in EntityType:
            if entity_type is EntityType.FULL:
                continue
            counts[entity_type.value] = await self.for_type(entity_type).count()
        return counts
