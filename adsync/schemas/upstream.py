"""
Validation of raw records returned by the upstream advertising API.

The upstream is inconsistent about key casing (``networkId`` vs
``network_id``), sends numbers as strings, and omits optional fields. Each
model here accepts either spelling, fills the documented defaults, and
rejects statuses/types outside the local enumerations. ``to_fields()``
yields the column values for the matching repository.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, ClassVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from adsync.common.utils import parse_datetime, safe_float, safe_int
from adsync.models.base import (
    AD_TYPES,
    ADVERTISEMENT_STATUSES,
    ADVERTISER_STATUSES,
    CAMPAIGN_STATUSES,
    NETWORK_STATUSES,
    ZONE_STATUSES,
)


def _alias(snake: str, camel: str) -> AliasChoices:
    return AliasChoices(snake, camel)


class UpstreamRecord(BaseModel):
    """Fields common to every synced entity."""

    model_config = ConfigDict(extra="ignore")

    label: ClassVar[str] = "Entity"
    allowed_statuses: ClassVar[frozenset[str]] = NETWORK_STATUSES

    id: int = Field(..., gt=0)
    name: str = ""
    status: str = "active"
    created_at: datetime | None = Field(None, validation_alias=_alias("created_at", "createdAt"))

    @field_validator("name", mode="before")
    @classmethod
    def clean_name(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()

    @field_validator("status", mode="before")
    @classmethod
    def check_status(cls, v: Any) -> str:
        if v is None or v == "":
            return "active"
        status = str(v).strip().lower()
        if status not in cls.allowed_statuses:
            raise ValueError(f"status '{v}' not in {sorted(cls.allowed_statuses)}")
        return status

    @field_validator("created_at", mode="before")
    @classmethod
    def parse_created_at(cls, v: Any) -> datetime | None:
        return parse_datetime(v)

    @model_validator(mode="after")
    def default_name(self) -> "UpstreamRecord":
        if not self.name:
            self.name = f"{self.label} {self.id}"
        return self

    def to_fields(self) -> dict[str, Any]:
        """Column values for an update (``id`` and ``created_at`` excluded)."""
        return self.model_dump(exclude={"id", "created_at"})


def _text(v: Any) -> str:
    return "" if v is None else str(v)


class UpstreamNetwork(UpstreamRecord):
    label = "Network"

    description: str = ""

    @field_validator("description", mode="before")
    @classmethod
    def clean_description(cls, v: Any) -> str:
        return _text(v)


class UpstreamAdvertiser(UpstreamRecord):
    label = "Advertiser"
    allowed_statuses = ADVERTISER_STATUSES

    network_id: int | None = Field(None, validation_alias=_alias("network_id", "networkId"))
    email: str = ""
    phone: str = ""

    @field_validator("email", "phone", mode="before")
    @classmethod
    def clean_strings(cls, v: Any) -> str:
        return _text(v)


class UpstreamCampaign(UpstreamRecord):
    label = "Campaign"
    allowed_statuses = CAMPAIGN_STATUSES

    start_date: datetime | None = Field(None, validation_alias=_alias("start_date", "startDate"))
    end_date: datetime | None = Field(None, validation_alias=_alias("end_date", "endDate"))
    budget: float = 0.0
    spent: float = 0.0
    impressions: int = 0
    clicks: int = 0
    ctr: float = 0.0
    advertiser_id: int | None = Field(None, validation_alias=_alias("advertiser_id", "advertiserId"))
    network_id: int | None = Field(None, validation_alias=_alias("network_id", "networkId"))

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_dates(cls, v: Any) -> datetime | None:
        return parse_datetime(v)

    @field_validator("budget", "spent", "ctr", mode="before")
    @classmethod
    def coerce_floats(cls, v: Any) -> float:
        return safe_float(v)

    @field_validator("impressions", "clicks", mode="before")
    @classmethod
    def coerce_ints(cls, v: Any) -> int:
        return safe_int(v)

    def to_fields(self) -> dict[str, Any]:
        fields = super().to_fields()
        fields["budget"] = Decimal(str(self.budget))
        fields["spent"] = Decimal(str(self.spent))
        return fields


class _Sized(UpstreamRecord):
    """Records carrying an ad format and pixel dimensions."""

    type: str = "banner"
    width: int = 0
    height: int = 0

    @field_validator("type", mode="before")
    @classmethod
    def check_type(cls, v: Any) -> str:
        if v is None or v == "":
            return "banner"
        ad_type = str(v).strip().lower()
        if ad_type not in AD_TYPES:
            raise ValueError(f"type '{v}' not in {sorted(AD_TYPES)}")
        return ad_type

    @field_validator("width", "height", mode="before")
    @classmethod
    def coerce_dimensions(cls, v: Any) -> int:
        return safe_int(v)


class UpstreamAdvertisement(_Sized):
    label = "Advertisement"
    allowed_statuses = ADVERTISEMENT_STATUSES

    campaign_id: int | None = Field(None, validation_alias=_alias("campaign_id", "campaignId"))
    advertiser_id: int | None = Field(None, validation_alias=_alias("advertiser_id", "advertiserId"))
    network_id: int | None = Field(None, validation_alias=_alias("network_id", "networkId"))


class UpstreamZone(_Sized):
    label = "Zone"
    allowed_statuses = ZONE_STATUSES

    network_id: int | None = Field(None, validation_alias=_alias("network_id", "networkId"))
    description: str = ""

    @field_validator("description", mode="before")
    @classmethod
    def clean_description(cls, v: Any) -> str:
        return _text(v)


# Upstream collection name -> record model
UPSTREAM_SCHEMAS: dict[str, type[UpstreamRecord]] = {
    "networks": UpstreamNetwork,
    "advertisers": UpstreamAdvertiser,
    "campaigns": UpstreamCampaign,
    "advertisements": UpstreamAdvertisement,
    "zones": UpstreamZone,
}
