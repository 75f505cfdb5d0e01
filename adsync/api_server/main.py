"""
AdSync API server.

Dashboard read endpoints backed by the local cache, plus the manual sync
trigger and sync status surfaces.
"""

import time
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from adsync.api_server.dependencies import ServiceContainer
from adsync.api_server.middleware.metrics import MetricsMiddleware, metrics_endpoint
from adsync.api_server.routers import dashboard, entities, health, sync
from adsync.common.config import get_settings
from adsync.common.database import db
from adsync.common.exceptions import (
    AdSyncError,
    InitializationInProgressError,
    RecordNotFoundError,
    SyncAlreadyInProgressError,
    UpstreamAuthError,
    UpstreamError,
    UpstreamRateLimitedError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)
from adsync.common.logger import clear_log_context, get_logger, log_context
from adsync.common.utils import generate_request_id
from adsync.schemas.response import ErrorResponse

logger = get_logger(__name__)

# (exception type, HTTP status, client-facing category), most specific first
ERROR_CATEGORIES: list[tuple[type[AdSyncError], int, str]] = [
    (SyncAlreadyInProgressError, 409, "conflict"),
    (InitializationInProgressError, 409, "conflict"),
    (RecordNotFoundError, 404, "not_found"),
    (UpstreamRateLimitedError, 429, "rate_limited"),
    (UpstreamAuthError, 401, "auth_failed"),
    (UpstreamTimeoutError, 504, "timeout"),
    (UpstreamUnavailableError, 503, "unavailable"),
    (UpstreamError, 502, "upstream_error"),
]

_CLIENT_MESSAGES = {
    "rate_limited": "Advertising API rate limit exceeded, try again later",
    "auth_failed": "Advertising API rejected the configured credentials",
    "timeout": "Advertising API did not answer in time",
    "unavailable": "Advertising API is unavailable",
    "upstream_error": "Advertising API returned an error",
}


def categorize(exc: AdSyncError) -> tuple[int, str]:
    for exc_type, status_code, category in ERROR_CATEGORIES:
        if isinstance(exc, exc_type):
            return status_code, category
    return 500, "sync_error"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()

    logger.info(
        "Starting AdSync server",
        version=settings.app_version,
        env=settings.env,
    )

    await db.init()
    if settings.debug or settings.database.is_sqlite:
        await db.create_tables()

    services = ServiceContainer(settings, db)
    app.state.services = services
    await services.start()

    logger.info("AdSync server started successfully")

    yield

    logger.info("Shutting down AdSync server")
    await services.close()
    await db.close()
    logger.info("AdSync server stopped")


def create_app(use_lifespan: bool = True) -> FastAPI:
    """
    Create and configure FastAPI application.

    Tests pass ``use_lifespan=False`` and set ``app.state.services``
    themselves.
    """
    settings = get_settings()

    app = FastAPI(
        title="AdSync",
        description="Campaign dashboard API over a locally cached advertising API",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan if use_lifespan else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if settings.monitoring.enabled:
        app.add_middleware(MetricsMiddleware)
        app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], tags=["monitoring"])

    # Request logging middleware
    @app.middleware("http")
    async def logging_middleware(request: Request, call_next: Any) -> Any:
        """Log all requests with timing."""
        request_id = generate_request_id()
        log_context(request_id=request_id)
        request.state.request_id = request_id

        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        finally:
            clear_log_context()

        duration_ms = (time.perf_counter() - start_time) * 1000

        logger.info(
            "Request completed",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        return response

    # Exception handlers
    @app.exception_handler(AdSyncError)
    async def adsync_error_handler(
        request: Request,
        exc: AdSyncError,
    ) -> JSONResponse:
        """Map domain errors to client-facing categories."""
        status_code, category = categorize(exc)
        logger.warning(
            "Request failed",
            error=exc.__class__.__name__,
            category=category,
            message=exc.message,
            path=request.url.path,
        )

        # Conflicts and lookups are safe to describe; upstream/internal are not
        if category in ("conflict", "not_found"):
            message, details = exc.message, exc.details or None
        else:
            message, details = _CLIENT_MESSAGES.get(category, "Sync operation failed"), None

        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=category,
                message=message,
                details=details,
                request_id=getattr(request.state, "request_id", None),
            ).model_dump(),
        )

    @app.exception_handler(Exception)
    async def general_error_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Handle unexpected errors."""
        logger.error(
            "Unexpected error",
            error=str(exc),
            error_type=exc.__class__.__name__,
        )

        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="internal_error",
                message="An unexpected error occurred",
                request_id=getattr(request.state, "request_id", None),
            ).model_dump(),
        )

    # Include routers
    app.include_router(health.router, tags=["health"])
    app.include_router(entities.router, prefix="/api/v1", tags=["entities"])
    app.include_router(dashboard.router, prefix="/api/v1/dashboard", tags=["dashboard"])
    app.include_router(sync.router, prefix="/api/v1/sync", tags=["sync"])

    return app


# Create app instance
app = create_app()


def main() -> None:
    """Run the server using uvicorn."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "adsync.api_server.main:app",
        host=settings.server.host,
        port=settings.server.port,
        workers=settings.server.workers,
        reload=settings.server.reload,
        log_level="info" if not settings.debug else "debug",
    )


if __name__ == "__main__":
    main()
