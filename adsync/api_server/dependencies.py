"""
Long-lived service objects for the API server.

One ``ServiceContainer`` is built per application and stored on
``app.state.services``; route handlers reach it through the dependency
functions below. Guard sets, the bootstrap task and the background queue
all live on these objects, never at module level.
"""

from __future__ import annotations

import httpx
from fastapi import Request

from adsync.api_server.services.background import BackgroundSyncQueue
from adsync.api_server.services.data_service import DataService
from adsync.api_server.services.initialization_service import InitializationService
from adsync.api_server.services.scheduler import AutoSyncScheduler
from adsync.api_server.services.sync_service import SyncService
from adsync.common.config import Settings
from adsync.common.database import DatabaseManager
from adsync.common.logger import get_logger
from adsync.repositories import Repositories
from adsync.upstream import BroadstreetClient

logger = get_logger(__name__)


class ServiceContainer:
    """Builds, starts and tears down the sync/cache services."""

    def __init__(
        self,
        settings: Settings,
        database: DatabaseManager,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings
        self.database = database
        self.repositories = Repositories.create(database)
        self.client = BroadstreetClient.from_settings(settings.upstream, transport=transport)
        self.sync_service = SyncService(self.client, self.repositories)
        self.init_service = InitializationService(self.sync_service, self.repositories)
        self.queue = BackgroundSyncQueue(
            self.sync_service, maxsize=settings.sync.background_queue_size
        )
        self.data_service = DataService(
            self.init_service, self.repositories, self.client, self.queue
        )
        self.scheduler = AutoSyncScheduler(
            self.queue, settings.sync.auto_sync_interval_minutes
        )

    async def start(self) -> None:
        self.queue.start()
        self.scheduler.start()
        if self.settings.sync.initialize_on_startup:
            await self.init_service.ensure_initialized()

    async def close(self) -> None:
        self.scheduler.stop()
        await self.queue.stop()
        await self.client.close()


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_data_service(request: Request) -> DataService:
    return get_services(request).data_service


def get_sync_service(request: Request) -> SyncService:
    return get_services(request).sync_service
