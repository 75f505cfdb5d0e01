"""
API request schemas.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from adsync.models import EntityType


class SyncTriggerRequest(BaseModel):
    """Manual sync trigger."""

    type: EntityType = Field(..., description="full, networks, advertisers, campaigns, advertisements or zones")
    entity_id: int | None = Field(
        None,
        gt=0,
        description="Parent scope: network id (advertisers/advertisements/zones) or advertiser id (campaigns)",
    )
    force: bool = Field(False, description="Run even if an overlapping sync is active")

    model_config = {
        "json_schema_extra": {
            "example": {"type": "advertisers", "entity_id": 9001, "force": False}
        }
    }
