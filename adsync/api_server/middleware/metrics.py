"""
Prometheus metrics middleware for monitoring.

Provides:
- Request latency histograms
- Request counters by endpoint
- Active request gauge
- Sync metrics (runs, records, stage latency, guards, background jobs)
- Upstream API latency and read-path source
"""

import time
from typing import Callable

from fastapi import Request, Response
from prometheus_client import Counter, Gauge, Histogram, Info, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response as StarletteResponse

from adsync.common.logger import get_logger

logger = get_logger(__name__)

# =============================================================================
# Prometheus Metrics Definitions
# =============================================================================

# Application info
APP_INFO = Info("adsync_app", "AdSync application information")
APP_INFO.info({
    "name": "adsync",
    "description": "Advertising API sync and cache service",
})

# HTTP request metrics
HTTP_REQUEST_TOTAL = Counter(
    "adsync_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

HTTP_REQUEST_DURATION = Histogram(
    "adsync_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "adsync_http_requests_in_progress",
    "HTTP requests currently in progress",
    ["method", "endpoint"],
)

# Sync metrics
SYNC_RUNS_TOTAL = Counter(
    "adsync_sync_runs_total",
    "Sync runs by entity type and outcome",
    ["entity_type", "outcome"],
)

SYNC_RECORDS_TOTAL = Counter(
    "adsync_sync_records_total",
    "Records handled by sync runs",
    ["entity_type", "outcome"],
)

SYNC_STAGE_DURATION = Histogram(
    "adsync_sync_stage_duration_seconds",
    "Duration of one entity sync stage",
    ["entity_type"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

SYNC_ACTIVE_GUARDS = Gauge(
    "adsync_sync_active_guards",
    "Sync scopes currently held by the concurrency guard",
)

BACKGROUND_JOBS_TOTAL = Counter(
    "adsync_background_jobs_total",
    "Background sync jobs by outcome",
    ["entity_type", "outcome"],
)

BACKGROUND_QUEUE_DEPTH = Gauge(
    "adsync_background_queue_depth",
    "Background sync jobs waiting to run",
)

# Upstream metrics
UPSTREAM_REQUEST_LATENCY = Histogram(
    "adsync_upstream_request_latency_seconds",
    "Upstream API request latency",
    ["endpoint", "outcome"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# Read path
READ_SOURCE_TOTAL = Counter(
    "adsync_read_source_total",
    "Read-path answers by entity type and source",
    ["entity_type", "source"],
)


# =============================================================================
# Metrics Middleware
# =============================================================================

class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Middleware that collects Prometheus metrics for all HTTP requests.
    """

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        """Process request and record metrics."""
        method = request.method
        endpoint = self._get_endpoint(request)

        HTTP_REQUESTS_IN_PROGRESS.labels(method=method, endpoint=endpoint).inc()

        start_time = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        except Exception as e:
            logger.error("Request error", error=str(e), endpoint=endpoint)
            raise
        finally:
            duration = time.perf_counter() - start_time

            HTTP_REQUEST_TOTAL.labels(
                method=method,
                endpoint=endpoint,
                status=str(status_code),
            ).inc()

            HTTP_REQUEST_DURATION.labels(
                method=method,
                endpoint=endpoint,
            ).observe(duration)

            HTTP_REQUESTS_IN_PROGRESS.labels(
                method=method,
                endpoint=endpoint,
            ).dec()

    def _get_endpoint(self, request: Request) -> str:
        """Get endpoint path, normalizing path parameters."""
        # e.g., /api/v1/campaigns/123 -> /api/v1/campaigns/{id}
        parts = request.url.path.split("/")
        return "/".join("{id}" if part.isdigit() else part for part in parts)


# =============================================================================
# Metrics Endpoint
# =============================================================================

async def metrics_endpoint() -> StarletteResponse:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format.
    """
    return StarletteResponse(
        content=generate_latest(),
        media_type="text/plain; charset=utf-8",
    )


# =============================================================================
# Helper Functions for Recording Sync Metrics
# =============================================================================

def record_sync_run(entity_type: str, success: bool) -> None:
    """Record a finished sync run."""
    SYNC_RUNS_TOTAL.labels(
        entity_type=entity_type,
        outcome="completed" if success else "failed",
    ).inc()


def record_sync_records(entity_type: str, created: int, updated: int, skipped: int, failed: int) -> None:
    """Record per-record outcomes of one sync stage."""
    for outcome, count in (
        ("created", created),
        ("updated", updated),
        ("skipped", skipped),
        ("failed", failed),
    ):
        if count:
            SYNC_RECORDS_TOTAL.labels(entity_type=entity_type, outcome=outcome).inc(count)


def record_sync_stage_duration(entity_type: str, duration: float) -> None:
    """Record how long one entity stage took."""
    SYNC_STAGE_DURATION.labels(entity_type=entity_type).observe(duration)


def set_active_guards(count: int) -> None:
    """Set the number of held sync guards."""
    SYNC_ACTIVE_GUARDS.set(count)


def record_background_job(entity_type: str, outcome: str) -> None:
    """Record a background job outcome (completed/failed/dropped)."""
    BACKGROUND_JOBS_TOTAL.labels(entity_type=entity_type, outcome=outcome).inc()


def set_background_queue_depth(depth: int) -> None:
    """Set the number of queued background jobs."""
    BACKGROUND_QUEUE_DEPTH.set(depth)


def record_upstream_request(endpoint: str, outcome: str, duration: float) -> None:
    """Record upstream request latency."""
    UPSTREAM_REQUEST_LATENCY.labels(endpoint=endpoint, outcome=outcome).observe(duration)


def record_read_source(entity_type: str, source: str) -> None:
    """Record whether a read was served locally or from upstream."""
    READ_SOURCE_TOTAL.labels(entity_type=entity_type, source=source).inc()
