"""
Read path for the dashboard.

Every read first makes sure the store has been bootstrapped, then answers
from the local cache. Local data is never considered stale by age, only by
absence: when the cache has nothing for a query the facade reads the
upstream API directly, answers with that, and queues a background sync so
the next read is local.
"""

from __future__ import annotations

import asyncio
from typing import Any

from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError

from adsync.api_server.middleware.metrics import record_read_source
from adsync.api_server.services.background import BackgroundSyncQueue, SyncJob
from adsync.api_server.services.initialization_service import InitializationService
from adsync.common.exceptions import RecordNotFoundError, UpstreamError
from adsync.common.logger import get_logger
from adsync.common.utils import coerce_entity_id, safe_float, safe_int
from adsync.models import EntityType
from adsync.repositories import Repositories
from adsync.schemas.response import (
    AdvertisementOut,
    AdvertiserOut,
    CampaignOut,
    CampaignPerformance,
    CampaignStats,
    DashboardSummary,
    EntityListResponse,
    EntityStats,
    NetworkOut,
    ZoneOut,
)
from adsync.schemas.upstream import UPSTREAM_SCHEMAS
from adsync.upstream import BroadstreetClient, MalformedResponse, parse_envelope

logger = get_logger(__name__)

_OUTPUT_SCHEMAS: dict[EntityType, type[BaseModel]] = {
    EntityType.NETWORKS: NetworkOut,
    EntityType.ADVERTISERS: AdvertiserOut,
    EntityType.CAMPAIGNS: CampaignOut,
    EntityType.ADVERTISEMENTS: AdvertisementOut,
    EntityType.ZONES: ZoneOut,
}


def _serialize(entity_type: EntityType, obj: Any) -> dict[str, Any]:
    return _OUTPUT_SCHEMAS[entity_type].model_validate(obj).model_dump(mode="json")


def _stats(items: list[dict[str, Any]]) -> EntityStats:
    return EntityStats(
        total=len(items),
        active=sum(1 for item in items if item.get("status") == "active"),
    )


class DataService:
    """Local-first reads with upstream fallback and background backfill."""

    def __init__(
        self,
        init_service: InitializationService,
        repositories: Repositories,
        client: BroadstreetClient,
        queue: BackgroundSyncQueue,
    ):
        self.init_service = init_service
        self.repositories = repositories
        self.client = client
        self.queue = queue

    # ==================== Upstream fallback ====================

    async def _fetch_upstream(self, entity_type: EntityType, **scope: Any) -> list[dict[str, Any]]:
        """One upstream list call, validated and serialized; bad records are dropped."""
        plural = entity_type.value
        parsed = parse_envelope(await self.client.fetch(plural, **scope), plural)
        if isinstance(parsed, MalformedResponse):
            logger.warning("Unexpected upstream response shape", entity_type=plural, shape=parsed.shape)
            return []

        schema = UPSTREAM_SCHEMAS[plural]
        items = []
        for raw in parsed.records:
            record_id = coerce_entity_id(raw.get("id"))
            if record_id is None:
                continue
            try:
                record = schema.model_validate({**raw, "id": record_id})
            except ValidationError as e:
                logger.warning("Dropping invalid upstream record", entity_type=plural, entity_id=record_id, error=str(e))
                continue
            fields = {"id": record_id, "created_at": record.created_at, **record.to_fields()}
            # The parent a scoped call was issued for wins over the payload
            fields.update({key: value for key, value in scope.items() if key in fields})
            items.append(_serialize(entity_type, fields))
        return items

    async def _fan_out(
        self,
        entity_type: EntityType,
        scope_field: str,
        parent_ids: list[int],
    ) -> list[dict[str, Any]]:
        """Sequential per-parent upstream reads; a failing parent contributes nothing."""
        items: list[dict[str, Any]] = []
        for parent_id in parent_ids:
            try:
                items.extend(await self._fetch_upstream(entity_type, **{scope_field: parent_id}))
            except UpstreamError as e:
                logger.error(
                    "Upstream read failed for parent",
                    entity_type=entity_type.value,
                    **{scope_field: parent_id},
                    error=str(e),
                )
        return items

    async def _upstream_ids(self, entity_type: EntityType, **scope: Any) -> list[int]:
        return [item["id"] for item in await self._fetch_upstream(entity_type, **scope)]

    async def _read_upstream(self, entity_type: EntityType, network_id: int | None = None) -> list[dict[str, Any]]:
        """
        Upstream equivalent of a local query.

        The upstream only lists children per parent, so unscoped reads walk
        networks (and, for campaigns, their advertisers).
        """
        if entity_type is EntityType.NETWORKS:
            return await self._fetch_upstream(entity_type)

        if entity_type is EntityType.CAMPAIGNS:
            if network_id:
                advertiser_ids = await self._upstream_ids(EntityType.ADVERTISERS, network_id=network_id)
            else:
                network_ids = await self._upstream_ids(EntityType.NETWORKS)
                advertisers = await self._fan_out(EntityType.ADVERTISERS, "network_id", network_ids)
                advertiser_ids = [item["id"] for item in advertisers]
            return await self._fan_out(entity_type, "advertiser_id", advertiser_ids)

        if network_id:
            return await self._fetch_upstream(entity_type, network_id=network_id)
        network_ids = await self._upstream_ids(EntityType.NETWORKS)
        return await self._fan_out(entity_type, "network_id", network_ids)

    def _backfill(self, job: SyncJob) -> None:
        # Failures surface through the queue counters, never to the reader
        self.queue.enqueue(job)

    # ==================== Entity reads ====================

    async def _read(
        self,
        entity_type: EntityType,
        local: list[Any],
        network_id: int | None = None,
    ) -> EntityListResponse:
        if local:
            record_read_source(entity_type.value, "local")
            logger.debug("Served from local cache", entity_type=entity_type.value, count=len(local))
            items = [_serialize(entity_type, record) for record in local]
            return EntityListResponse(items=items, count=len(items), source="local")

        logger.info("No local data, falling back to upstream", entity_type=entity_type.value, network_id=network_id)
        record_read_source(entity_type.value, "upstream")
        items = await self._read_upstream(entity_type, network_id)
        if items:
            # Campaign syncs are scoped by advertiser, not network
            scope = None if entity_type in (EntityType.NETWORKS, EntityType.CAMPAIGNS) else network_id
            self._backfill(SyncJob(entity_type, scope))
        return EntityListResponse(items=items, count=len(items), source="upstream")

    async def get_networks(self) -> EntityListResponse:
        await self.init_service.ensure_initialized()
        local = await self.repositories.networks.find_all(order_by="name")
        return await self._read(EntityType.NETWORKS, local)

    async def get_advertisers(self, network_id: int | None = None) -> EntityListResponse:
        await self.init_service.ensure_initialized()
        repository = self.repositories.advertisers
        if network_id:
            local = await repository.get_by_network_id(network_id)
        else:
            local = await repository.find_all(order_by="name")
        return await self._read(EntityType.ADVERTISERS, local, network_id)

    async def get_campaigns(self, network_id: int | None = None) -> EntityListResponse:
        await self.init_service.ensure_initialized()
        repository = self.repositories.campaigns
        if network_id:
            local = await repository.get_by_network_id(network_id)
        else:
            local = await repository.find_all(order_by="-start_date")
        return await self._read(EntityType.CAMPAIGNS, local, network_id)

    async def get_campaign(self, campaign_id: int) -> dict[str, Any]:
        """
        One cached campaign.

        Raises:
            RecordNotFoundError: the campaign is not in the local cache
        """
        await self.init_service.ensure_initialized()
        campaign = await self.repositories.campaigns.find_by_id(campaign_id)
        if campaign is None:
            raise RecordNotFoundError(f"Campaign {campaign_id} not found", {"id": campaign_id})
        return _serialize(EntityType.CAMPAIGNS, campaign)

    async def get_campaign_performance(self, campaign_id: int) -> CampaignPerformance:
        """
        Live impressions, clicks and CTR for one campaign.

        Always read from the upstream records endpoint, which reports no
        spend; ``spend`` comes from the cached campaign when there is one.

        Raises:
            RecordNotFoundError: the upstream does not know the campaign
        """
        record_read_source("campaign_performance", "upstream")
        try:
            totals = await self.client.fetch_campaign_totals(campaign_id)
        except UpstreamError as e:
            if e.status_code == 404:
                raise RecordNotFoundError(
                    f"Campaign {campaign_id} not found", {"id": campaign_id}
                ) from e
            raise

        impressions = safe_int(totals.get("views"))
        clicks = safe_int(totals.get("clicks"))
        cached = await self.repositories.campaigns.find_by_id(campaign_id)
        return CampaignPerformance(
            campaign_id=campaign_id,
            impressions=impressions,
            clicks=clicks,
            ctr=clicks / impressions * 100 if impressions > 0 else 0.0,
            spend=safe_float(cached.spent) if cached else 0.0,
        )

    async def get_advertisements(self, network_id: int | None = None) -> EntityListResponse:
        await self.init_service.ensure_initialized()
        repository = self.repositories.advertisements
        if network_id:
            local = await repository.get_by_network_id(network_id)
        else:
            local = await repository.find_all(order_by="name")
        return await self._read(EntityType.ADVERTISEMENTS, local, network_id)

    async def get_zones(self, network_id: int | None = None) -> EntityListResponse:
        await self.init_service.ensure_initialized()
        repository = self.repositories.zones
        if network_id:
            local = await repository.get_by_network_id(network_id)
        else:
            local = await repository.find_all(order_by="name")
        return await self._read(EntityType.ZONES, local, network_id)

    # ==================== Dashboard ====================

    async def get_dashboard_summary(self, network_id: int | None = None) -> DashboardSummary:
        """
        Per-entity counts, local first.

        Falls back to an upstream-built summary (and queues a full sync) when
        the cache has neither campaigns nor networks.
        """
        await self.init_service.ensure_initialized()
        repos = self.repositories

        try:
            networks, advertisers, campaigns, advertisements, zones = await asyncio.gather(
                repos.networks.get_network_stats(),
                repos.advertisers.get_advertiser_stats(network_id),
                repos.campaigns.get_campaign_stats(network_id),
                repos.advertisements.get_advertisement_stats(network_id),
                repos.zones.get_zone_stats(network_id),
            )
            if campaigns["total"] > 0 or networks["total"] > 0:
                record_read_source("dashboard", "local")
                return DashboardSummary(
                    networks=EntityStats(**networks),
                    advertisers=EntityStats(**advertisers),
                    campaigns=CampaignStats(**campaigns),
                    advertisements=EntityStats(**advertisements),
                    zones=EntityStats(**zones),
                    source="local",
                )
        except SQLAlchemyError as e:
            logger.warning("Failed to build local dashboard summary", error=str(e))

        logger.info("No meaningful local data, building summary from upstream", network_id=network_id)
        record_read_source("dashboard", "upstream")
        summary = await self._upstream_summary(network_id)
        self._backfill(SyncJob(EntityType.FULL))
        return summary

    async def _upstream_summary(self, network_id: int | None) -> DashboardSummary:
        networks = await self._read_upstream(EntityType.NETWORKS)
        network_ids = [network_id] if network_id else [item["id"] for item in networks]

        advertisers = await self._fan_out(EntityType.ADVERTISERS, "network_id", network_ids)
        advertiser_ids = [item["id"] for item in advertisers]
        campaigns, advertisements, zones = await asyncio.gather(
            self._fan_out(EntityType.CAMPAIGNS, "advertiser_id", advertiser_ids),
            self._fan_out(EntityType.ADVERTISEMENTS, "network_id", network_ids),
            self._fan_out(EntityType.ZONES, "network_id", network_ids),
        )

        campaign_stats = _stats(campaigns)
        return DashboardSummary(
            networks=_stats(networks),
            advertisers=_stats(advertisers),
            campaigns=CampaignStats(
                total=campaign_stats.total,
                active=campaign_stats.active,
                paused=sum(1 for c in campaigns if c.get("status") == "paused"),
                total_spend=sum(c.get("spent") or 0.0 for c in campaigns),
                total_impressions=sum(c.get("impressions") or 0 for c in campaigns),
                total_clicks=sum(c.get("clicks") or 0 for c in campaigns),
            ),
            advertisements=_stats(advertisements),
            zones=_stats(zones),
            source="upstream",
        )
