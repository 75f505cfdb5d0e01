"""
Base model and common utilities for SQLAlchemy ORM.

Enumerations are stored as their string values so the tables read the same
way the upstream advertising API spells them.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Integer, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class."""
    pass


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=func.now(), onupdate=func.now(), nullable=False
    )


class SyncTrackedMixin:
    """
    Cache-freshness bookkeeping shared by every synced entity.

    ``last_sync_at`` is the time of the last local write, not the upstream
    modification time. ``sync_version`` counts writes: 1 on create, +1 on
    every update or upsert.
    """

    last_sync_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=func.now(), nullable=False, index=True
    )
    sync_version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)


class EntityStatus(str, Enum):
    """Status shared by networks, advertisers, advertisements and zones."""
    ACTIVE = "active"
    PAUSED = "paused"
    INACTIVE = "inactive"
    PENDING = "pending"     # advertisements only


class CampaignStatus(str, Enum):
    """Campaign lifecycle status."""
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    DRAFT = "draft"
    INACTIVE = "inactive"


class AdType(str, Enum):
    """Creative / placement format for advertisements and zones."""
    BANNER = "banner"
    TEXT = "text"
    VIDEO = "video"
    NATIVE = "native"
    POPUP = "popup"
    INTERSTITIAL = "interstitial"


class EntityType(str, Enum):
    """Sync scope: one entity collection, or everything."""
    NETWORKS = "networks"
    ADVERTISERS = "advertisers"
    CAMPAIGNS = "campaigns"
    ADVERTISEMENTS = "advertisements"
    ZONES = "zones"
    FULL = "full"


class SyncStatus(str, Enum):
    """Sync ledger record status."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SyncStatus.COMPLETED, SyncStatus.FAILED)


class TriggerSource(str, Enum):
    """What started a sync."""
    MANUAL = "manual"
    AUTO = "auto"
    INITIALIZATION = "initialization"
    WORKFLOW = "workflow"


# Statuses accepted per entity type
NETWORK_STATUSES = frozenset({"active", "paused", "inactive"})
ADVERTISER_STATUSES = NETWORK_STATUSES
ZONE_STATUSES = NETWORK_STATUSES
ADVERTISEMENT_STATUSES = frozenset({"active", "paused", "inactive", "pending"})
CAMPAIGN_STATUSES = frozenset(s.value for s in CampaignStatus)
AD_TYPES = frozenset(t.value for t in AdType)
