"""
Entity list endpoints for the dashboard.

Each list is served from the local cache, or from the upstream API when the
cache has nothing for the query (``source`` in the response says which).
"""

from typing import Any

from fastapi import APIRouter, Depends, Path, Query

from adsync.api_server.dependencies import get_data_service
from adsync.api_server.services.data_service import DataService
from adsync.schemas.response import CampaignPerformance, EntityListResponse

router = APIRouter()

NetworkScope = Query(None, gt=0, description="Restrict to one network")
CampaignId = Path(..., gt=0, description="Upstream campaign id")


@router.get("/networks", response_model=EntityListResponse)
async def list_networks(
    data_service: DataService = Depends(get_data_service),
) -> EntityListResponse:
    return await data_service.get_networks()


@router.get("/advertisers", response_model=EntityListResponse)
async def list_advertisers(
    network_id: int | None = NetworkScope,
    data_service: DataService = Depends(get_data_service),
) -> EntityListResponse:
    return await data_service.get_advertisers(network_id)


@router.get("/campaigns", response_model=EntityListResponse)
async def list_campaigns(
    network_id: int | None = NetworkScope,
    data_service: DataService = Depends(get_data_service),
) -> EntityListResponse:
    return await data_service.get_campaigns(network_id)


@router.get("/campaigns/{campaign_id}")
async def get_campaign(
    campaign_id: int = CampaignId,
    data_service: DataService = Depends(get_data_service),
) -> dict[str, Any]:
    """Single cached campaign; 404 when it has not been synced."""
    return await data_service.get_campaign(campaign_id)


@router.get("/campaigns/{campaign_id}/performance", response_model=CampaignPerformance)
async def get_campaign_performance(
    campaign_id: int = CampaignId,
    data_service: DataService = Depends(get_data_service),
) -> CampaignPerformance:
    """Live impressions, clicks and CTR from the upstream records endpoint."""
    return await data_service.get_campaign_performance(campaign_id)


@router.get("/advertisements", response_model=EntityListResponse)
async def list_advertisements(
    network_id: int | None = NetworkScope,
    data_service: DataService = Depends(get_data_service),
) -> EntityListResponse:
    return await data_service.get_advertisements(network_id)


@router.get("/zones", response_model=EntityListResponse)
async def list_zones(
    network_id: int | None = NetworkScope,
    data_service: DataService = Depends(get_data_service),
) -> EntityListResponse:
    return await data_service.get_zones(network_id)
