"""
Sync ledger repository.

Append-mostly: records are created when a sync starts and moved to a
terminal status once. ``completed_at`` is written only on the first
transition to ``completed`` or ``failed``.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import func, select

from adsync.common.exceptions import RecordNotFoundError
from adsync.common.utils import current_datetime
from adsync.models import EntityType, SyncMetadata, SyncStatus, TriggerSource
from adsync.repositories.base import BaseRepository

_ACTIVE_STATUSES = (SyncStatus.PENDING.value, SyncStatus.IN_PROGRESS.value)
_TERMINAL_STATUSES = (SyncStatus.COMPLETED.value, SyncStatus.FAILED.value)

_UPDATABLE_FIELDS = frozenset({
    "records_processed",
    "records_created",
    "records_updated",
    "records_deleted",
    "error_message",
    "details",
})


class SyncMetadataRepository(BaseRepository[SyncMetadata]):
    model = SyncMetadata

    async def create_sync_record(
        self,
        entity_type: EntityType | str,
        triggered_by: TriggerSource | str,
        *,
        status: SyncStatus | str = SyncStatus.IN_PROGRESS,
        entity_id: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> SyncMetadata:
        """
        Open a ledger record.

        ``sync_version`` is the per-entity-type generation number: one more
        than the highest version recorded for that type so far. It is computed
        inside the INSERT itself, so concurrent openers never share a version
        on SQLite, where writers are serialized. On PostgreSQL two
        transactions racing under READ COMMITTED can still read the same
        maximum.
        """
        entity_type = EntityType(entity_type).value
        status = SyncStatus(status)
        now = current_datetime()

        async with self.database.session() as session:
            next_version = (
                select(func.coalesce(func.max(SyncMetadata.sync_version), 0) + 1)
                .where(SyncMetadata.entity_type == entity_type)
                .scalar_subquery()
            )

            record = SyncMetadata(
                entity_type=entity_type,
                entity_id=entity_id,
                status=status.value,
                started_at=now,
                completed_at=now if status.is_terminal else None,
                records_processed=0,
                records_created=0,
                records_updated=0,
                records_deleted=0,
                error_message="",
                sync_version=next_version,
                triggered_by=TriggerSource(triggered_by).value,
                details=dict(details or {}),
            )
            session.add(record)
            await session.flush()
            # The version was assigned by the database
            await session.refresh(record)
        return record

    async def update_sync_status(
        self,
        record_id: int,
        status: SyncStatus | str,
        **fields: Any,
    ) -> SyncMetadata:
        """
        Move a record to ``status`` and merge ``fields`` into it.

        ``details`` is merged key-by-key into the stored blob; other fields
        overwrite. A terminal status stamps ``completed_at`` unless it is
        already set.

        Raises:
            RecordNotFoundError: no record with ``record_id``
            ValueError: an unknown field, or a move out of a terminal status
        """
        status = SyncStatus(status)
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update sync record fields: {sorted(unknown)}")

        async with self.database.session() as session:
            record = await self._get(session, record_id)
            if record is None:
                raise RecordNotFoundError(
                    f"Sync record {record_id} not found", {"id": record_id}
                )
            if record.status in _TERMINAL_STATUSES and record.status != status.value:
                raise ValueError(
                    f"Sync record {record_id} is already {record.status}, cannot move to {status.value}"
                )

            details = fields.pop("details", None)
            if details:
                record.details = {**(record.details or {}), **details}
            for key, value in fields.items():
                setattr(record, key, value)

            record.status = status.value
            if status.is_terminal and record.completed_at is None:
                record.completed_at = current_datetime()
            await session.flush()
        return record

    async def get_latest_sync(
        self,
        entity_type: EntityType | str,
        entity_id: int | None = None,
    ) -> SyncMetadata | None:
        """Most recently completed record for a type and optional scope."""
        filters: dict[str, Any] = {
            "entity_type": EntityType(entity_type).value,
            "status": SyncStatus.COMPLETED.value,
        }
        if entity_id:
            filters["entity_id"] = entity_id
        return await self.find_one(filters, order_by="-completed_at")

    async def get_active_syncs(self) -> list[SyncMetadata]:
        """Pending and in-progress records, newest first (includes orphans)."""
        return await self.find_all(
            {"status": _ACTIVE_STATUSES}, order_by=["-started_at", "-id"]
        )

    async def get_history(self, limit: int = 10) -> list[SyncMetadata]:
        """Last ``limit`` completed or failed records, newest first."""
        return await self.find_all(
            {"status": _TERMINAL_STATUSES},
            order_by=["-completed_at", "-id"],
            limit=limit,
        )
