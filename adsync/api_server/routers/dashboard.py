"""
Dashboard summary endpoint.
"""

from fastapi import APIRouter, Depends, Query

from adsync.api_server.dependencies import get_data_service
from adsync.api_server.services.data_service import DataService
from adsync.schemas.response import DashboardSummary

router = APIRouter()


@router.get("/summary", response_model=DashboardSummary)
async def dashboard_summary(
    network_id: int | None = Query(None, gt=0, description="Restrict counts to one network"),
    data_service: DataService = Depends(get_data_service),
) -> DashboardSummary:
    """
    Totals per entity type.

    Network totals are never scoped; the other counts follow ``network_id``.
    """
    return await data_service.get_dashboard_summary(network_id)
