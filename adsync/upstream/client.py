"""
Async HTTP client for the Broadstreet advertising API.

One ``httpx.AsyncClient`` per process with a fixed timeout. Failures are
mapped onto the ``UpstreamError`` hierarchy; nothing is retried.
"""

from __future__ import annotations

import time
from typing import Any

import httpx

from adsync.api_server.middleware.metrics import record_upstream_request
from adsync.common.config import UpstreamSettings
from adsync.common.exceptions import (
    MalformedResponseError,
    UpstreamAuthError,
    UpstreamError,
    UpstreamRateLimitedError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)
from adsync.common.logger import get_logger
from adsync.common.utils import json_loads

logger = get_logger(__name__)


class BroadstreetClient:
    """List endpoints (``/networks``, ``/advertisers``, ...) and campaign totals."""

    def __init__(
        self,
        base_url: str,
        access_token: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(
        cls,
        settings: UpstreamSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "BroadstreetClient":
        return cls(
            base_url=settings.base_url,
            access_token=settings.access_token,
            timeout=settings.timeout_seconds,
            transport=transport,
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def fetch(self, plural: str, **scope: Any) -> Any:
        """
        GET ``/{plural}`` and return the decoded JSON body.

        ``scope`` becomes query parameters (``network_id``, ``advertiser_id``,
        ...); ``None`` values are dropped.

        Raises:
            UpstreamTimeoutError: the fixed timeout expired
            UpstreamAuthError: 401/403
            UpstreamRateLimitedError: 429
            UpstreamUnavailableError: 5xx or transport failure
            UpstreamError: any other non-2xx answer or an undecodable body
        """
        params = {key: value for key, value in scope.items() if value is not None}
        params["access_token"] = self.access_token
        path = f"/{plural}"

        client = self._get_client()
        start = time.perf_counter()
        outcome = "error"
        try:
            response = await client.get(path, params=params)
            outcome = str(response.status_code)
        except httpx.TimeoutException as e:
            outcome = "timeout"
            raise UpstreamTimeoutError(
                f"Upstream request to {path} timed out after {self.timeout}s",
                details={"endpoint": path},
            ) from e
        except httpx.RequestError as e:
            raise UpstreamUnavailableError(
                f"Upstream request to {path} failed: {e.__class__.__name__}",
                details={"endpoint": path},
            ) from e
        finally:
            record_upstream_request(plural, outcome, time.perf_counter() - start)

        self._raise_for_status(response, path)

        try:
            return json_loads(response.content)
        except ValueError as e:
            raise UpstreamError(
                f"Upstream returned a non-JSON body for {path}",
                status_code=response.status_code,
                details={"endpoint": path},
            ) from e

    def _raise_for_status(self, response: httpx.Response, path: str) -> None:
        status = response.status_code
        if status < 400:
            return

        details = {"endpoint": path, "status_code": status}
        logger.warning("Upstream request failed", endpoint=path, status_code=status)

        if status in (401, 403):
            raise UpstreamAuthError("Upstream rejected the access token", status, details)
        if status == 429:
            raise UpstreamRateLimitedError("Upstream rate limit exceeded", status, details)
        if status >= 500:
            raise UpstreamUnavailableError(f"Upstream answered {status}", status, details)
        raise UpstreamError(f"Upstream answered {status}", status, details)

    async def fetch_campaign_totals(self, campaign_id: int) -> dict[str, Any]:
        """
        Delivery totals for one campaign from ``/records`` (``summary=1``).

        Returns the ``totals`` object (``views``, ``clicks``, ...), empty
        when the upstream has recorded nothing yet.

        Raises:
            MalformedResponseError: the body or its ``totals`` is not an object
            UpstreamError: as for ``fetch``; a 404 keeps ``status_code=404``
        """
        payload = await self.fetch("records", type="campaign", id=campaign_id, summary=1)
        totals = (payload.get("totals") or {}) if isinstance(payload, dict) else None
        if not isinstance(totals, dict):
            raise MalformedResponseError(
                f"Unexpected /records body for campaign {campaign_id}",
                status_code=200,
                details={"endpoint": "/records", "campaign_id": campaign_id},
            )
        return totals
