"""
Middleware for the API server.
"""

from adsync.api_server.middleware.metrics import (
    MetricsMiddleware,
    metrics_endpoint,
    record_background_job,
    record_read_source,
    record_sync_records,
    record_sync_run,
    record_sync_stage_duration,
    record_upstream_request,
    set_active_guards,
    set_background_queue_depth,
)

__all__ = [
    "MetricsMiddleware",
    "metrics_endpoint",
    "record_sync_run",
    "record_sync_records",
    "record_sync_stage_duration",
    "set_active_guards",
    "record_background_job",
    "set_background_queue_depth",
    "record_upstream_request",
    "record_read_source",
]
