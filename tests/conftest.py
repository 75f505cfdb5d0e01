"""
Pytest configuration and fixtures.
"""

import os

os.environ.setdefault("ADSYNC_ENV", "test")

import asyncio
from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from typing import Any

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from adsync.api_server.dependencies import ServiceContainer
from adsync.api_server.main import create_app
from adsync.api_server.services.sync_service import SyncService
from adsync.common.config import get_settings
from adsync.common.database import DatabaseManager
from adsync.repositories import Repositories
from adsync.upstream import BroadstreetClient

UPSTREAM_URL = "https://upstream.test/api/1"


class FakeUpstream:
    """
    In-memory stand-in for the advertising API, served through
    ``httpx.MockTransport``.

    Routes are keyed by collection name plus query parameters (the access
    token excluded). Unknown routes answer with an empty list.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, tuple[tuple[str, str], ...]], Any] = {}
        self.calls: list[tuple[str, dict[str, str]]] = []
        self.tokens: list[str | None] = []
        self.gates: dict[str, asyncio.Event] = {}

    @staticmethod
    def _key(plural: str, params: dict[str, Any]) -> tuple[str, tuple[tuple[str, str], ...]]:
        return plural, tuple(sorted((k, str(v)) for k, v in params.items()))

    def add(self, plural: str, payload: Any, status: int = 200, **params: Any) -> None:
        """Answer ``GET /{plural}?{params}`` with ``payload``."""
        self.routes[self._key(plural, params)] = (status, payload)

    def fail(self, plural: str, error: Callable[[httpx.Request], Exception], **params: Any) -> None:
        """Raise ``error(request)`` from the transport for this route."""
        self.routes[self._key(plural, params)] = (0, error)

    def hold(self, plural: str) -> asyncio.Event:
        """Block requests for ``plural`` until the returned event is set."""
        gate = asyncio.Event()
        self.gates[plural] = gate
        return gate

    def calls_to(self, plural: str) -> list[dict[str, str]]:
        return [params for name, params in self.calls if name == plural]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        plural = request.url.path.rsplit("/", 1)[-1]
        params = dict(request.url.params)
        self.tokens.append(params.pop("access_token", None))
        self.calls.append((plural, params))

        gate = self.gates.get(plural)
        if gate is not None:
            await gate.wait()

        route = self.routes.get(self._key(plural, params))
        if route is None:
            return httpx.Response(200, json=[])
        status, payload = route
        if callable(payload):
            raise payload(request)
        return httpx.Response(status, json=payload)


def seed_upstream(upstream: FakeUpstream) -> None:
    """Two networks with advertisers, campaigns, advertisements and zones."""
    upstream.add("networks", {"networks": [
        {"id": 1, "name": "Alpha Network", "status": "active"},
        {"id": 2, "name": "Beta Network"},
    ]})
    upstream.add("advertisers", {"advertisers": [
        {"id": 10, "name": "Acme", "email": "ads@acme.test"},
        {"id": 11, "name": "Globex"},
    ]}, network_id=1)
    upstream.add("advertisers", [{"id": 20, "name": "Initech"}], network_id=2)
    upstream.add("campaigns", [
        {"id": 100, "name": "Spring Sale", "status": "active", "spent": "120.50",
         "impressions": 1000, "clicks": 25, "startDate": "2024-03-01T00:00:00Z"},
        {"id": 101, "name": "Summer Sale", "status": "paused", "spent": 30},
    ], advertiser_id=10)
    upstream.add("campaigns", {"campaigns": [{"id": 200, "name": "Launch"}]}, advertiser_id=20)
    upstream.add("advertisements", [
        {"id": 1000, "name": "Leaderboard", "type": "banner", "width": 728, "height": 90,
         "campaignId": 100},
    ], network_id=1)
    upstream.add("zones", {"zones": [
        {"id": 5000, "name": "Header", "width": "728", "height": "90"},
    ]}, network_id=1)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def seeded_upstream(upstream: FakeUpstream) -> FakeUpstream:
    seed_upstream(upstream)
    return upstream


@pytest_asyncio.fixture(scope="function")
async def database(tmp_path: Path) -> AsyncGenerator[DatabaseManager, None]:
    """A fresh SQLite file database per test."""
    manager = DatabaseManager()
    await manager.init(f"sqlite+aiosqlite:///{tmp_path / 'adsync.db'}")
    await manager.create_tables()

    yield manager

    await manager.close()


@pytest.fixture
def repositories(database: DatabaseManager) -> Repositories:
    return Repositories.create(database)


@pytest_asyncio.fixture(scope="function")
async def broadstreet(upstream: FakeUpstream) -> AsyncGenerator[BroadstreetClient, None]:
    client = BroadstreetClient(
        base_url=UPSTREAM_URL,
        access_token="test-token",
        timeout=5.0,
        transport=httpx.MockTransport(upstream.handler),
    )

    yield client

    await client.close()


@pytest.fixture
def sync_service(broadstreet: BroadstreetClient, repositories: Repositories) -> SyncService:
    return SyncService(broadstreet, repositories)


@pytest_asyncio.fixture(scope="function")
async def services(
    database: DatabaseManager,
    upstream: FakeUpstream,
) -> AsyncGenerator[ServiceContainer, None]:
    """Service container wired to the fake upstream, worker running."""
    container = ServiceContainer(
        get_settings(),
        database,
        transport=httpx.MockTransport(upstream.handler),
    )
    await container.start()

    yield container

    await container.close()


@pytest_asyncio.fixture(scope="function")
async def client(services: ServiceContainer) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client bound to the test services."""
    app = create_app(use_lifespan=False)
    app.state.services = services

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
