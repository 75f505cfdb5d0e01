"""
Database connection and session management using SQLAlchemy async.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from adsync.common.config import get_settings
from adsync.common.logger import get_logger
from adsync.common.utils import json_dumps, json_loads
from adsync.models.base import Base

logger = get_logger(__name__)


class DatabaseManager:
    """
    Database connection manager.

    Handles async database connections and sessions.
    """

    def __init__(self) -> None:
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        """Get the database engine."""
        if self._engine is None:
            raise RuntimeError("Database not initialized. Call init() first.")
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        """Get the session factory."""
        if self._session_factory is None:
            raise RuntimeError("Database not initialized. Call init() first.")
        return self._session_factory

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    async def init(self, url: str | None = None) -> None:
        """Initialize database connection."""
        settings = get_settings()
        url = url or settings.database.async_url

        engine_kwargs: dict[str, Any] = {
            "echo": settings.debug,
            "json_serializer": json_dumps,
            "json_deserializer": json_loads,
        }
        if url.startswith("sqlite"):
            # One connection per session; SQLite serializes writers itself
            engine_kwargs["poolclass"] = NullPool
        else:
            engine_kwargs.update(
                pool_size=settings.database.pool_size,
                max_overflow=settings.database.max_overflow,
                pool_pre_ping=True,
            )

        self._engine = create_async_engine(url, **engine_kwargs)

        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        if self._engine.dialect.name == "postgresql":

            @event.listens_for(self._engine.sync_engine, "connect")
            def set_search_path(dbapi_conn: Any, _: Any) -> None:
                """Set default search path."""
                cursor = dbapi_conn.cursor()
                cursor.execute("SET search_path TO public")
                cursor.close()

        logger.info(
            "Database initialized",
            dialect=self._engine.dialect.name,
            database=self._engine.url.database,
        )

    async def close(self) -> None:
        """Close database connection."""
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database connection closed")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get a database session context manager.

        Usage:
            async with db.session() as session:
                result = await session.execute(query)
        """
        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """Check database connection health."""
        try:
            async with self.session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return False

    async def create_tables(self, drop_existing: bool = False) -> None:
        """Create all tables in the database."""
        async with self.engine.begin() as conn:
            if drop_existing:
                await conn.run_sync(Base.metadata.drop_all)
                logger.warning("Database tables dropped")
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")


# Global database manager instance
db = DatabaseManager()
