"""
Cached advertising entities mirrored from the upstream API.

Defines: Network, Advertiser, Campaign, Advertisement, Zone

Every table is keyed by the upstream-assigned integer ``id``. Parent
references (``network_id``, ``advertiser_id``, ``campaign_id``) are plain
indexed integers without foreign-key constraints: the upstream can hand out
ids whose parents were never synced, and readers must treat a missing
parent as normal.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    DateTime,
    Float,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from adsync.models.base import Base, SyncTrackedMixin, TimestampMixin


class Network(Base, TimestampMixin, SyncTrackedMixin):
    """Publisher network; root of the entity hierarchy."""

    __tablename__ = "networks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    status: Mapped[str] = mapped_column(String(32), default="active", index=True)

    __table_args__ = (
        Index("idx_networks_status_sync", "status", "last_sync_at"),
    )


class Advertiser(Base, TimestampMixin, SyncTrackedMixin):
    """Advertiser account within a network."""

    __tablename__ = "advertisers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    network_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(32), default="active", index=True)
    email: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    phone: Mapped[str] = mapped_column(String(64), default="", nullable=False)

    __table_args__ = (
        Index("idx_advertisers_network_status", "network_id", "status"),
    )


class Campaign(Base, TimestampMixin, SyncTrackedMixin):
    """Advertiser campaign with cached delivery totals."""

    __tablename__ = "campaigns"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(32), default="active", index=True)

    # Schedule
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Budget
    budget: Mapped[Decimal] = mapped_column(Numeric(14, 4), default=Decimal("0"))
    spent: Mapped[Decimal] = mapped_column(Numeric(14, 4), default=Decimal("0"))

    # Delivery (cached from upstream)
    impressions: Mapped[int] = mapped_column(Integer, default=0)
    clicks: Mapped[int] = mapped_column(Integer, default=0)
    ctr: Mapped[float] = mapped_column(Float, default=0.0)

    # Parents
    advertiser_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    network_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)

    __table_args__ = (
        Index("idx_campaigns_network_status", "network_id", "status"),
        Index("idx_campaigns_start_date", "start_date"),
    )


class Advertisement(Base, TimestampMixin, SyncTrackedMixin):
    """Creative served within a campaign."""

    __tablename__ = "advertisements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(32), default="banner", index=True)
    status: Mapped[str] = mapped_column(String(32), default="active", index=True)
    width: Mapped[int] = mapped_column(Integer, default=0)
    height: Mapped[int] = mapped_column(Integer, default=0)

    # Parents
    campaign_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    advertiser_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    network_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)


class Zone(Base, TimestampMixin, SyncTrackedMixin):
    """Ad placement slot on a network's inventory."""

    __tablename__ = "zones"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    network_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(32), default="banner", index=True)
    status: Mapped[str] = mapped_column(String(32), default="active", index=True)
    width: Mapped[int] = mapped_column(Integer, default=0)
    height: Mapped[int] = mapped_column(Integer, default=0)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)

    __table_args__ = (
        Index("idx_zones_network_status", "network_id", "status"),
        Index("idx_zones_size", "type", "width", "height"),
    )
