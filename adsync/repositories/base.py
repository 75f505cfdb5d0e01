"""
Base repositories over the local cache database.

``BaseRepository`` provides keyed lookups, structural filtering and counts.
``SyncedEntityRepository`` adds the write path for mirrored entities: every
write stamps ``last_sync_at`` and advances ``sync_version`` with an in-SQL
increment, so concurrent writers never lose a count.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any, ClassVar, Generic, TypeVar

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from adsync.common.database import DatabaseManager
from adsync.common.exceptions import DatabaseError, DuplicateKeyError
from adsync.common.logger import get_logger
from adsync.common.utils import current_datetime
from adsync.models.base import Base

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=Base)

Filters = Mapping[str, Any]
OrderBy = str | Sequence[str] | None

# Columns callers may not write directly; the repository owns them
_MANAGED_FIELDS = frozenset({"id", "last_sync_at", "sync_version"})


class BaseRepository(Generic[ModelT]):
    """Read operations and deletes keyed by the record ``id``."""

    model: ClassVar[type[Base]]

    def __init__(self, database: DatabaseManager):
        self.database = database

    @property
    def table_name(self) -> str:
        return self.model.__tablename__

    # ==================== Query building ====================

    def _column(self, field: str) -> Any:
        try:
            return self.model.__table__.c[field]
        except KeyError:
            raise ValueError(f"Unknown field '{field}' for {self.table_name}") from None

    def _where(self, filters: Filters | None) -> list[ColumnElement[bool]]:
        """
        Translate a structural filter into SQL conditions.

        ``{"status": "active"}`` is equality, a list/tuple/set value is
        membership, and ``None`` matches NULL.
        """
        conditions: list[ColumnElement[bool]] = []
        for field, value in (filters or {}).items():
            column = self._column(field)
            if value is None:
                conditions.append(column.is_(None))
            elif isinstance(value, (list, tuple, set, frozenset)):
                conditions.append(column.in_(list(value)))
            else:
                conditions.append(column == value)
        return conditions

    def _order(self, order_by: OrderBy) -> list[Any]:
        """``"name"`` sorts ascending, ``"-started_at"`` descending."""
        if not order_by:
            return []
        fields = [order_by] if isinstance(order_by, str) else list(order_by)
        clauses = []
        for field in fields:
            if field.startswith("-"):
                clauses.append(self._column(field[1:]).desc())
            else:
                clauses.append(self._column(field).asc())
        return clauses

    async def _get(self, session: AsyncSession, record_id: int) -> ModelT | None:
        stmt = (
            select(self.model)
            .where(self.model.id == record_id)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    # ==================== Reads ====================

    async def find_by_id(self, record_id: int) -> ModelT | None:
        async with self.database.session() as session:
            return await self._get(session, record_id)

    async def find_all(
        self,
        filters: Filters | None = None,
        *,
        order_by: OrderBy = None,
        limit: int | None = None,
    ) -> list[ModelT]:
        """Return every record matching ``filters`` (all records when omitted)."""
        stmt = select(self.model).where(*self._where(filters)).order_by(*self._order(order_by))
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self.database.session() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def find_one(
        self,
        filters: Filters | None = None,
        *,
        order_by: OrderBy = None,
    ) -> ModelT | None:
        records = await self.find_all(filters, order_by=order_by, limit=1)
        return records[0] if records else None

    async def count(self, filters: Filters | None = None) -> int:
        stmt = select(func.count()).select_from(self.model).where(*self._where(filters))
        async with self.database.session() as session:
            result = await session.execute(stmt)
            return int(result.scalar_one())

    async def delete(self, record_id: int) -> bool:
        """Remove a record; True iff one existed."""
        async with self.database.session() as session:
            record = await self._get(session, record_id)
            if record is None:
                return False
            await session.delete(record)
        return True


class SyncedEntityRepository(BaseRepository[ModelT]):
    """
    Write path for entities mirrored from the upstream API.

    Records are keyed by the upstream ``id``; the store never assigns ids.
    """

    # Human-readable type name used for defaults and log lines
    label: ClassVar[str] = "Entity"

    def _writable(self, data: Mapping[str, Any]) -> dict[str, Any]:
        columns = self.model.__table__.c
        values = {}
        for key, value in data.items():
            if key in _MANAGED_FIELDS:
                continue
            if key not in columns:
                raise ValueError(f"Unknown field '{key}' for {self.table_name}")
            values[key] = value
        return values

    def _insert(self) -> Any:
        dialect = self.database.dialect_name
        if dialect == "postgresql":
            return pg_insert(self.model)
        if dialect == "sqlite":
            return sqlite_insert(self.model)
        raise DatabaseError(f"Upsert not supported for dialect '{dialect}'")

    async def create(self, data: Mapping[str, Any]) -> ModelT:
        """
        Insert a new record with ``sync_version=1``.

        Raises:
            DuplicateKeyError: a record with the same ``id`` already exists.
        """
        record_id = data.get("id")
        if record_id is None:
            raise ValueError(f"{self.label} create requires an 'id'")

        now = current_datetime()
        values = self._writable(data)
        values.setdefault("created_at", now)
        values.setdefault("updated_at", now)
        record = self.model(id=record_id, last_sync_at=now, sync_version=1, **values)

        try:
            async with self.database.session() as session:
                session.add(record)
                await session.flush()
        except IntegrityError as e:
            if await self.find_by_id(record_id) is not None:
                raise DuplicateKeyError(self.table_name, record_id) from e
            raise DatabaseError(
                f"{self.label} {record_id} violates a table constraint",
                {"table": self.table_name, "id": record_id},
            ) from e
        return record

    async def update(self, record_id: int, data: Mapping[str, Any]) -> ModelT | None:
        """
        Merge ``data`` into an existing record.

        Returns None when no record has ``record_id``; never creates one.
        """
        now = current_datetime()
        values = self._writable(data)
        values.setdefault("updated_at", now)
        values.pop("created_at", None)

        stmt = (
            update(self.model)
            .where(self.model.id == record_id)
            .values(
                **values,
                last_sync_at=now,
                sync_version=self.model.sync_version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        async with self.database.session() as session:
            result = await session.execute(stmt)
            if result.rowcount == 0:
                return None
            return await self._get(session, record_id)

    async def upsert(self, record_id: int, data: Mapping[str, Any]) -> ModelT:
        """Create-or-merge in a single ``INSERT ... ON CONFLICT`` statement."""
        now = current_datetime()
        values = self._writable(data)
        values.setdefault("updated_at", now)
        insert_values = {
            "created_at": now,
            **values,
            "id": record_id,
            "last_sync_at": now,
            "sync_version": 1,
        }

        stmt = self._insert().values(**insert_values)
        set_ = {key: stmt.excluded[key] for key in values if key != "created_at"}
        set_["last_sync_at"] = stmt.excluded.last_sync_at
        set_["sync_version"] = self.model.sync_version + 1
        stmt = stmt.on_conflict_do_update(index_elements=[self.model.id], set_=set_)

        async with self.database.session() as session:
            await session.execute(stmt)
            record = await self._get(session, record_id)
        if record is None:
            raise DatabaseError(f"Upsert of {self.label} {record_id} returned no row")
        return record

    async def get_last_sync_time(self) -> datetime | None:
        stmt = select(func.max(self.model.last_sync_at))
        async with self.database.session() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def get_stats(self, filters: Filters | None = None) -> dict[str, int]:
        """``{total, active}`` counts, optionally scoped."""
        base = dict(filters or {})
        total = await self.count(base)
        active = await self.count({**base, "status": "active"})
        return {"total": total, "active": active}


def parent_scope(field: str, value: int | None) -> dict[str, int]:
    """Filter for an optional parent id; an absent scope matches everything."""
    return {field: value} if value else {}
