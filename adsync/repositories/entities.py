"""
Per-entity repositories with the lookups and aggregates the read path needs.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import case, func, select

from adsync.models import Advertisement, Advertiser, Campaign, Network, Zone
from adsync.repositories.base import SyncedEntityRepository, parent_scope


class NetworkRepository(SyncedEntityRepository[Network]):
    model = Network
    label = "Network"

    async def get_active_networks(self) -> list[Network]:
        return await self.find_all({"status": "active"}, order_by="name")

    async def get_network_stats(self) -> dict[str, int]:
        return await self.get_stats()


class AdvertiserRepository(SyncedEntityRepository[Advertiser]):
    model = Advertiser
    label = "Advertiser"

    async def get_by_network_id(self, network_id: int) -> list[Advertiser]:
        return await self.find_all({"network_id": network_id}, order_by="name")

    async def get_active_advertisers(self, network_id: int | None = None) -> list[Advertiser]:
        filters = {"status": "active", **parent_scope("network_id", network_id)}
        return await self.find_all(filters, order_by="name")

    async def get_advertiser_stats(self, network_id: int | None = None) -> dict[str, int]:
        return await self.get_stats(parent_scope("network_id", network_id))


class CampaignRepository(SyncedEntityRepository[Campaign]):
    model = Campaign
    label = "Campaign"

    async def get_by_network_id(self, network_id: int) -> list[Campaign]:
        return await self.find_all({"network_id": network_id}, order_by="-start_date")

    async def get_by_advertiser_id(self, advertiser_id: int) -> list[Campaign]:
        return await self.find_all({"advertiser_id": advertiser_id}, order_by="-start_date")

    async def get_active_campaigns(self, network_id: int | None = None) -> list[Campaign]:
        filters = {"status": "active", **parent_scope("network_id", network_id)}
        return await self.find_all(filters, order_by="-start_date")

    async def get_campaign_stats(self, network_id: int | None = None) -> dict[str, Any]:
        """
        Status counts plus spend/impression/click totals.

        Missing numeric values count as zero.
        """
        stmt = select(
            func.count().label("total"),
            func.coalesce(func.sum(case((Campaign.status == "active", 1), else_=0)), 0).label("active"),
            func.coalesce(func.sum(case((Campaign.status == "paused", 1), else_=0)), 0).label("paused"),
            func.coalesce(func.sum(func.coalesce(Campaign.spent, 0)), 0).label("total_spend"),
            func.coalesce(func.sum(func.coalesce(Campaign.impressions, 0)), 0).label("total_impressions"),
            func.coalesce(func.sum(func.coalesce(Campaign.clicks, 0)), 0).label("total_clicks"),
        ).where(*self._where(parent_scope("network_id", network_id)))

        async with self.database.session() as session:
            row = (await session.execute(stmt)).one()

        return {
            "total": int(row.total),
            "active": int(row.active),
            "paused": int(row.paused),
            "total_spend": float(row.total_spend),
            "total_impressions": int(row.total_impressions),
            "total_clicks": int(row.total_clicks),
        }

    async def search_campaigns(self, query: str, network_id: int | None = None) -> list[Campaign]:
        """Case-insensitive name search."""
        stmt = (
            select(Campaign)
            .where(Campaign.name.ilike(f"%{query}%"))
            .where(*self._where(parent_scope("network_id", network_id)))
            .order_by(Campaign.name)
        )
        async with self.database.session() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())


class AdvertisementRepository(SyncedEntityRepository[Advertisement]):
    model = Advertisement
    label = "Advertisement"

    async def get_by_campaign_id(self, campaign_id: int) -> list[Advertisement]:
        return await self.find_all({"campaign_id": campaign_id}, order_by="name")

    async def get_by_network_id(self, network_id: int) -> list[Advertisement]:
        return await self.find_all({"network_id": network_id}, order_by="name")

    async def get_advertisement_stats(self, network_id: int | None = None) -> dict[str, int]:
        return await self.get_stats(parent_scope("network_id", network_id))


class ZoneRepository(SyncedEntityRepository[Zone]):
    model = Zone
    label = "Zone"

    async def get_by_network_id(self, network_id: int) -> list[Zone]:
        return await self.find_all({"network_id": network_id}, order_by="name")

    async def get_zone_stats(self, network_id: int | None = None) -> dict[str, int]:
        return await self.get_stats(parent_scope("network_id", network_id))
