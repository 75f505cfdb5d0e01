"""
Cold-start bootstrap of the local cache.

``ensure_initialized`` is single-flight: while a bootstrap runs, every
caller awaits the same task instead of starting another one.
"""

from __future__ import annotations

import asyncio

from sqlalchemy.exc import SQLAlchemyError

from adsync.api_server.services.sync_service import SyncRun, SyncService
from adsync.common.exceptions import InitializationInProgressError
from adsync.common.logger import get_logger
from adsync.models import EntityType, TriggerSource
from adsync.repositories import Repositories
from adsync.schemas.response import InitializationStatus

logger = get_logger(__name__)


class InitializationService:
    """Populates an empty store once per process."""

    def __init__(self, sync_service: SyncService, repositories: Repositories):
        self.sync_service = sync_service
        self.repositories = repositories
        self._inflight: asyncio.Task[SyncRun] | None = None
        self._initializing = False

    @property
    def is_initializing(self) -> bool:
        return self._initializing or (self._inflight is not None and not self._inflight.done())

    async def is_store_empty(self) -> bool:
        """True when no networks, advertisers or campaigns are cached."""
        for repository in (
            self.repositories.networks,
            self.repositories.advertisers,
            self.repositories.campaigns,
        ):
            if await repository.count() > 0:
                return False
        return True

    async def ensure_initialized(self) -> SyncRun | None:
        """
        Bootstrap if the store is empty; no-op otherwise.

        Returns the bootstrap run this call waited on, or None when the store
        already had data.
        """
        if self._inflight is not None:
            return await asyncio.shield(self._inflight)

        try:
            empty = await self.is_store_empty()
        except SQLAlchemyError as e:
            logger.warning("Store emptiness check failed; assuming empty", error=str(e))
            empty = True

        if not empty:
            return None

        # Another caller may have started while the check was suspended
        if self._inflight is None:
            logger.info("Local store empty, starting initialization")
            self._inflight = asyncio.create_task(self.perform_initialization())
        return await asyncio.shield(self._inflight)

    async def force_initialization(self) -> SyncRun:
        """Bootstrap regardless of store contents, sharing any in-flight run."""
        if self._inflight is None:
            logger.info("Forced initialization requested")
            self._inflight = asyncio.create_task(self.perform_initialization())
        return await asyncio.shield(self._inflight)

    async def perform_initialization(self) -> SyncRun:
        """
        Run the full stage sequence under an ``initialization`` ledger record.

        Raises:
            InitializationInProgressError: another bootstrap is mid-flight
        """
        if self._initializing:
            raise InitializationInProgressError()
        self._initializing = True

        try:
            record = await self.repositories.sync_metadata.create_sync_record(
                EntityType.FULL,
                TriggerSource.INITIALIZATION,
                details={"reason": "initial_data_load", "source": "initialization"},
            )
            logger.info("Initialization started", sync_id=record.id)

            run = await self.sync_service.track(
                record, lambda: self.sync_service.run_stages(lenient=True)
            )
            logger.info("Initialization completed", sync_id=record.id, **run.total.as_dict())
            return run
        finally:
            self._initializing = False
            self._inflight = None

    async def get_initialization_status(self) -> InitializationStatus:
        last = await self.repositories.sync_metadata.get_latest_sync(EntityType.FULL)
        counts = await self.repositories.record_counts()
        return InitializationStatus(
            is_initialized=not await self.is_store_empty(),
            is_initializing=self.is_initializing,
            last_initialization=last.completed_at if last else None,
            record_counts=counts,
        )
