"""
Custom exceptions for AdSync.
"""

from typing import Any


class AdSyncError(Exception):
    """Base exception for AdSync."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigError(AdSyncError):
    """Configuration loading or validation errors."""

    pass


class DatabaseError(AdSyncError):
    """Database related errors."""

    pass


class DuplicateKeyError(DatabaseError):
    """A record with the same external id already exists."""

    def __init__(self, table: str, entity_id: int):
        super().__init__(
            f"Duplicate id {entity_id} in {table}",
            {"table": table, "id": entity_id},
        )
        self.entity_id = entity_id


class RecordNotFoundError(AdSyncError):
    """Requested record does not exist in the local store."""

    pass


# ---------------------------------------------------------------------------
# Sync orchestration
# ---------------------------------------------------------------------------

class SyncAlreadyInProgressError(AdSyncError):
    """A sync for the same scope is already running."""

    def __init__(self, active: list[str] | str):
        scopes = [active] if isinstance(active, str) else list(active)
        super().__init__(
            f"Sync already in progress: {', '.join(scopes)}",
            {"active_syncs": scopes},
        )
        self.active_syncs = scopes


class InitializationInProgressError(AdSyncError):
    """A bootstrap of the local store is already in flight."""

    def __init__(self) -> None:
        super().__init__("Initialization already in progress")


# ---------------------------------------------------------------------------
# Upstream advertising API
# ---------------------------------------------------------------------------

class UpstreamError(AdSyncError):
    """The upstream advertising API returned an error."""

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code


class UpstreamUnavailableError(UpstreamError):
    """Upstream unreachable or answering with 5xx."""

    pass


class UpstreamTimeoutError(UpstreamError):
    """Upstream request exceeded the configured timeout."""

    pass


class UpstreamAuthError(UpstreamError):
    """Upstream rejected the access token."""

    pass


class UpstreamRateLimitedError(UpstreamError):
    """Upstream rate limit exceeded."""

    pass


class MalformedResponseError(UpstreamError):
    """Upstream answered 2xx with a body of an unexpected shape."""

    pass
