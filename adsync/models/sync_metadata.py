"""
Sync ledger: one row per sync attempt.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from adsync.common.utils import duration_ms
from adsync.models.base import Base, SyncStatus, TimestampMixin


class SyncMetadata(Base, TimestampMixin):
    """
    Audit record of a sync run.

    Rows are created ``in_progress`` and moved to a terminal status once.
    A row left ``in_progress`` after a crash is an orphaned sync; it stays
    visible through the active-sync query and is never auto-recovered.
    """

    __tablename__ = "sync_metadata"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    entity_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    status: Mapped[str] = mapped_column(
        String(32), default=SyncStatus.PENDING.value, nullable=False, index=True
    )

    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=func.now(), nullable=False, index=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    # Counters
    records_processed: Mapped[int] = mapped_column(Integer, default=0)
    records_created: Mapped[int] = mapped_column(Integer, default=0)
    records_updated: Mapped[int] = mapped_column(Integer, default=0)
    records_deleted: Mapped[int] = mapped_column(Integer, default=0)

    error_message: Mapped[str] = mapped_column(Text, default="", nullable=False)
    sync_version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    triggered_by: Mapped[str] = mapped_column(String(32), nullable=False, index=True)

    # ``metadata`` is reserved on declarative classes
    details: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, default=dict, nullable=False
    )

    __table_args__ = (
        Index("idx_sync_metadata_type_status", "entity_type", "status"),
        Index("idx_sync_metadata_status_started", "status", "started_at"),
        Index("idx_sync_metadata_scope", "entity_type", "entity_id", "started_at"),
    )

    @property
    def duration_ms(self) -> int | None:
        """Run time in milliseconds, or None while not terminal."""
        return duration_ms(self.started_at, self.completed_at)
