"""
Sync orchestration: upstream API -> local cache.

Each entity stage fetches one collection from the upstream API, normalizes
the envelope, validates every record and writes it through the matching
repository (update when the id is known, create otherwise). A process-wide
guard set keyed by ``"{entity_type}-{scope|all}"`` rejects a second run of
the same scope while one is in flight; nothing is queued or awaited.

A full sync runs the five stages strictly in order because the unscoped
advertiser, campaign, advertisement and zone stages iterate parents that
earlier stages stored locally.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager, nullcontext
from dataclasses import asdict, dataclass, field
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from adsync.api_server.middleware.metrics import (
    record_sync_records,
    record_sync_run,
    record_sync_stage_duration,
    set_active_guards,
)
from adsync.common.exceptions import (
    AdSyncError,
    DuplicateKeyError,
    RecordNotFoundError,
    SyncAlreadyInProgressError,
    UpstreamError,
)
from adsync.common.logger import get_logger, sync_log_context
from adsync.common.utils import coerce_entity_id, current_datetime
from adsync.models import EntityType, SyncMetadata, SyncStatus, TriggerSource
from adsync.repositories import Repositories
from adsync.schemas.upstream import UPSTREAM_SCHEMAS, UpstreamRecord
from adsync.upstream import BroadstreetClient, MalformedResponse, parse_envelope

logger = get_logger(__name__)

# Full-sync stage order; later stages read what earlier ones stored
STAGE_ORDER = (
    EntityType.NETWORKS,
    EntityType.ADVERTISERS,
    EntityType.CAMPAIGNS,
    EntityType.ADVERTISEMENTS,
    EntityType.ZONES,
)

# Stages a bootstrap may lose without failing
OPTIONAL_STAGES = frozenset({EntityType.ADVERTISEMENTS, EntityType.ZONES})


@dataclass
class SyncResult:
    """
    Counts for one stage (or a sum of stages).

    ``processed`` counts records with a usable id and always equals
    ``created + updated + failed``; id-less records only count as ``skipped``.
    """

    processed: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0

    def __add__(self, other: "SyncResult") -> "SyncResult":
        return SyncResult(
            processed=self.processed + other.processed,
            created=self.created + other.created,
            updated=self.updated + other.updated,
            skipped=self.skipped + other.skipped,
            failed=self.failed + other.failed,
        )

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class SyncRun:
    """A ledger-tracked sync and its per-stage results."""

    record: SyncMetadata
    results: dict[str, SyncResult] = field(default_factory=dict)

    @property
    def total(self) -> SyncResult:
        return sum(self.results.values(), SyncResult())


@dataclass(frozen=True)
class _Stage:
    entity_type: EntityType
    schema: type[UpstreamRecord]
    # Columns that must be known before a row can be written
    required: tuple[str, ...] = ()

    @property
    def plural(self) -> str:
        return self.entity_type.value


_STAGES = {
    entity_type: _Stage(entity_type, UPSTREAM_SCHEMAS[entity_type.value], required)
    for entity_type, required in (
        (EntityType.NETWORKS, ()),
        (EntityType.ADVERTISERS, ("network_id",)),
        (EntityType.CAMPAIGNS, ()),
        (EntityType.ADVERTISEMENTS, ()),
        (EntityType.ZONES, ("network_id",)),
    )
}


def guard_key(entity_type: EntityType | str, scope_id: int | None = None) -> str:
    """``"advertisers-42"`` or ``"advertisers-all"``."""
    return f"{EntityType(entity_type).value}-{scope_id or 'all'}"


class SyncService:
    """Upstream-to-cache reconciliation with a per-scope concurrency guard."""

    def __init__(self, client: BroadstreetClient, repositories: Repositories):
        self.client = client
        self.repositories = repositories
        self._active: set[str] = set()

    @property
    def ledger(self):
        return self.repositories.sync_metadata

    # ==================== Concurrency guard ====================

    @contextmanager
    def _guard(self, key: str) -> Iterator[None]:
        # Check and insert without a suspension point in between
        if key in self._active:
            raise SyncAlreadyInProgressError(key)
        self._active.add(key)
        set_active_guards(len(self._active))
        try:
            yield
        finally:
            self._active.discard(key)
            set_active_guards(len(self._active))

    def is_sync_active(self, key: str | None = None) -> bool:
        """Whether ``key`` (or, without a key, any scope) is held."""
        if key is None:
            return bool(self._active)
        return key in self._active

    def get_active_syncs(self) -> list[str]:
        """Snapshot of the held guard keys."""
        return sorted(self._active)

    def overlapping_syncs(self, entity_type: EntityType | str) -> list[str]:
        """
        Held scopes that conflict with a new sync of ``entity_type``.

        A full sync conflicts with anything; a single-type sync conflicts with
        any scope of the same type and with a running full sync.
        """
        entity_type = EntityType(entity_type)
        active = self.get_active_syncs()
        if entity_type is EntityType.FULL:
            return active
        prefixes = (f"{entity_type.value}-", f"{EntityType.FULL.value}-")
        return [key for key in active if key.startswith(prefixes)]

    # ==================== Fetch / apply ====================

    async def _fetch(self, stage: _Stage, **scope: Any) -> list[dict[str, Any]]:
        payload = await self.client.fetch(stage.plural, **scope)
        parsed = parse_envelope(payload, stage.plural)
        if isinstance(parsed, MalformedResponse):
            logger.warning(
                "Unexpected upstream response shape",
                entity_type=stage.plural,
                shape=parsed.shape,
                scope=scope or None,
            )
            return []
        return parsed.records

    async def _apply(
        self,
        stage: _Stage,
        records: list[dict[str, Any]],
        overrides: dict[str, Any] | None = None,
        defaults: dict[str, Any] | None = None,
    ) -> SyncResult:
        """
        Write ``records`` in upstream order.

        ``overrides`` replace record values (the parent a scoped fetch was
        issued for); ``defaults`` only fill values the record left empty.
        """
        repository = self.repositories.for_type(stage.entity_type)
        result = SyncResult()

        for raw in records:
            record_id = coerce_entity_id(raw.get("id"))
            if record_id is None:
                result.skipped += 1
                logger.warning(
                    "Skipping record without usable id",
                    entity_type=stage.plural,
                    payload_id=raw.get("id"),
                )
                continue

            result.processed += 1
            try:
                parsed = stage.schema.model_validate({**raw, "id": record_id})
                fields = parsed.to_fields()
                for key, value in (defaults or {}).items():
                    if fields.get(key) is None:
                        fields[key] = value
                fields.update(overrides or {})

                missing = [key for key in stage.required if fields.get(key) is None]
                if missing:
                    raise ValueError(f"missing {', '.join(missing)}")

                if await self._write(repository, record_id, fields, parsed):
                    result.created += 1
                else:
                    result.updated += 1
            except (ValueError, OverflowError, SQLAlchemyError, AdSyncError) as e:
                result.failed += 1
                logger.error(
                    "Failed to sync record",
                    entity_type=stage.plural,
                    entity_id=record_id,
                    error=str(e),
                    error_type=e.__class__.__name__,
                )

        return result

    async def _write(
        self,
        repository: Any,
        record_id: int,
        fields: dict[str, Any],
        parsed: UpstreamRecord,
    ) -> bool:
        """Update or create one row; True when it was created."""
        if await repository.find_by_id(record_id) is not None:
            if await repository.update(record_id, fields) is None:
                raise RecordNotFoundError(f"{parsed.label} {record_id} vanished during sync")
            return False

        try:
            await repository.create({
                "id": record_id,
                "created_at": parsed.created_at or current_datetime(),
                **fields,
            })
        except DuplicateKeyError:
            # Created by a concurrent writer since the lookup
            await repository.update(record_id, fields)
            return False
        return True

    async def _run_stage(
        self,
        stage: _Stage,
        work: Callable[[], Awaitable[SyncResult]],
        scope_id: int | None = None,
        held: bool = False,
    ) -> SyncResult:
        """Run ``work`` for one scope; ``held`` means the caller already owns the guard."""
        key = guard_key(stage.entity_type, scope_id)
        with nullcontext() if held else self._guard(key), sync_log_context(key):
            logger.info("Sync stage started", entity_type=stage.plural, scope=scope_id)
            started = time.perf_counter()
            result = await work()
            duration = time.perf_counter() - started

            record_sync_stage_duration(stage.plural, duration)
            record_sync_records(
                stage.plural, result.created, result.updated, result.skipped, result.failed
            )
            logger.info(
                "Sync stage completed",
                entity_type=stage.plural,
                scope=scope_id,
                duration_ms=round(duration * 1000, 2),
                **result.as_dict(),
            )
            return result

    async def _sync_per_parent(
        self,
        stage: _Stage,
        parents: list[Any],
        scope_field: str,
        inherit: Callable[[Any], dict[str, Any]] | None = None,
    ) -> SyncResult:
        """
        Unscoped run: one upstream call per stored parent, sequentially.

        A failing parent is logged and contributes nothing.
        """
        result = SyncResult()
        for parent in parents:
            try:
                records = await self._fetch(stage, **{scope_field: parent.id})
            except UpstreamError as e:
                logger.error(
                    "Failed to fetch records for parent",
                    entity_type=stage.plural,
                    **{scope_field: parent.id},
                    error=str(e),
                )
                continue
            defaults = inherit(parent) if inherit else None
            result += await self._apply(stage, records, {scope_field: parent.id}, defaults)
        return result

    # ==================== Entity stages ====================

    def _plan(
        self,
        entity_type: EntityType,
        scope_id: int | None = None,
    ) -> tuple[_Stage, Callable[[], Awaitable[SyncResult]], int | None]:
        """The stage, its work and its effective scope; networks ignore ``scope_id``."""
        stage = _STAGES[entity_type]

        if entity_type is EntityType.NETWORKS:
            async def sync_all_networks() -> SyncResult:
                return await self._apply(stage, await self._fetch(stage))

            return stage, sync_all_networks, None

        if entity_type is EntityType.CAMPAIGNS:
            def inherit(advertiser: Any) -> dict[str, Any]:
                return {"network_id": advertiser.network_id}

            async def sync_campaigns() -> SyncResult:
                if scope_id:
                    records = await self._fetch(stage, advertiser_id=scope_id)
                    advertiser = await self.repositories.advertisers.find_by_id(scope_id)
                    defaults = inherit(advertiser) if advertiser else None
                    return await self._apply(stage, records, {"advertiser_id": scope_id}, defaults)
                advertisers = await self.repositories.advertisers.get_active_advertisers()
                return await self._sync_per_parent(stage, advertisers, "advertiser_id", inherit)

            return stage, sync_campaigns, scope_id

        # Advertisers, advertisements and zones are listed per network
        async def sync_by_network() -> SyncResult:
            if scope_id:
                records = await self._fetch(stage, network_id=scope_id)
                return await self._apply(stage, records, {"network_id": scope_id})
            networks = await self.repositories.networks.get_active_networks()
            return await self._sync_per_parent(stage, networks, "network_id")

        return stage, sync_by_network, scope_id

    async def sync_networks(self) -> SyncResult:
        return await self.sync_entity(EntityType.NETWORKS)

    async def sync_advertisers(self, network_id: int | None = None) -> SyncResult:
        """Advertisers of one network, or of every stored active network."""
        return await self.sync_entity(EntityType.ADVERTISERS, network_id)

    async def sync_campaigns(self, advertiser_id: int | None = None) -> SyncResult:
        """
        Campaigns of one advertiser, or of every stored active advertiser.

        ``network_id`` falls back to the stored advertiser's network.
        """
        return await self.sync_entity(EntityType.CAMPAIGNS, advertiser_id)

    async def sync_advertisements(self, network_id: int | None = None) -> SyncResult:
        return await self.sync_entity(EntityType.ADVERTISEMENTS, network_id)

    async def sync_zones(self, network_id: int | None = None) -> SyncResult:
        return await self.sync_entity(EntityType.ZONES, network_id)

    async def sync_entity(self, entity_type: EntityType | str, scope_id: int | None = None) -> SyncResult:
        """Run one stage by type under its own guard."""
        entity_type = EntityType(entity_type)
        if entity_type is EntityType.FULL:
            raise ValueError(f"'{entity_type.value}' is not a single-stage sync")
        return await self._run_stage(*self._plan(entity_type, scope_id))

    # ==================== Full sync ====================

    async def run_stages(self, lenient: bool = False) -> dict[str, SyncResult]:
        """
        Run every stage in ``STAGE_ORDER``.

        With ``lenient`` a failing advertisement or zone stage is logged and
        counted as empty instead of failing the run.
        """
        results: dict[str, SyncResult] = {}
        for entity_type in STAGE_ORDER:
            try:
                results[entity_type.value] = await self.sync_entity(entity_type)
            except (AdSyncError, SQLAlchemyError) as e:
                if not (lenient and entity_type in OPTIONAL_STAGES):
                    raise
                logger.warning(
                    "Optional sync stage failed",
                    entity_type=entity_type.value,
                    error=str(e),
                )
                results[entity_type.value] = SyncResult()
        return results

    async def track(
        self,
        record: SyncMetadata,
        runner: Callable[[], Awaitable[dict[str, SyncResult]]],
    ) -> SyncRun:
        """
        Run ``runner`` against an open ledger record and close the record.

        The record ends ``completed`` with the summed counts, or ``failed``
        with the error message, in which case the error is re-raised.
        """
        try:
            with sync_log_context(guard_key(record.entity_type, record.entity_id), sync_id=record.id):
                results = await runner()
        except Exception as e:
            await self.ledger.update_sync_status(
                record.id,
                SyncStatus.FAILED,
                error_message=str(e) or e.__class__.__name__,
                details={"error_type": e.__class__.__name__},
            )
            record_sync_run(record.entity_type, success=False)
            logger.error(
                "Sync failed",
                sync_id=record.id,
                entity_type=record.entity_type,
                error=str(e),
            )
            raise

        run = SyncRun(record=record, results=results)
        total = run.total
        run.record = await self.ledger.update_sync_status(
            record.id,
            SyncStatus.COMPLETED,
            records_processed=total.processed,
            records_created=total.created,
            records_updated=total.updated,
            records_deleted=0,
            details={"results": {name: r.as_dict() for name, r in results.items()}},
        )
        record_sync_run(record.entity_type, success=True)
        logger.info(
            "Sync completed",
            sync_id=record.id,
            entity_type=record.entity_type,
            **total.as_dict(),
        )
        return run

    @contextmanager
    def _reserve(
        self,
        entity_type: EntityType,
        scope_id: int | None,
        exclusive: bool,
    ) -> Iterator[str]:
        """
        Take the guard for a tracked run before anything is awaited.

        With ``exclusive`` every overlapping scope also conflicts, not just
        the exact one.
        """
        if exclusive:
            conflicts = self.overlapping_syncs(entity_type)
            if conflicts:
                raise SyncAlreadyInProgressError(conflicts)
        key = guard_key(entity_type, scope_id)
        with self._guard(key):
            yield key

    async def perform_full_sync(
        self,
        triggered_by: TriggerSource | str = TriggerSource.MANUAL,
        exclusive: bool = False,
    ) -> SyncRun:
        """All five stages under one ``full`` ledger record."""
        triggered_by = TriggerSource(triggered_by)
        with self._reserve(EntityType.FULL, None, exclusive):
            record = await self.ledger.create_sync_record(
                EntityType.FULL,
                triggered_by,
                details={"reason": "full_sync", "source": triggered_by.value},
            )
            return await self.track(record, self.run_stages)

    async def run_tracked(
        self,
        entity_type: EntityType | str,
        entity_id: int | None = None,
        triggered_by: TriggerSource | str = TriggerSource.MANUAL,
        exclusive: bool = False,
    ) -> SyncRun:
        """
        One sync of any type, recorded in the ledger.

        A conflicting scope is rejected before the ledger record is opened,
        so a refused run leaves no trace in the history.
        """
        entity_type = EntityType(entity_type)
        if entity_type is EntityType.FULL:
            return await self.perform_full_sync(triggered_by, exclusive)

        stage, work, scope_id = self._plan(entity_type, entity_id)
        with self._reserve(entity_type, scope_id, exclusive):
            record = await self.ledger.create_sync_record(
                entity_type,
                triggered_by,
                entity_id=scope_id,
                details={"reason": "entity_sync", "source": TriggerSource(triggered_by).value},
            )

            async def runner() -> dict[str, SyncResult]:
                return {entity_type.value: await self._run_stage(stage, work, scope_id, held=True)}

            return await self.track(record, runner)

    async def trigger_sync(
        self,
        entity_type: EntityType | str,
        entity_id: int | None = None,
        force: bool = False,
    ) -> SyncRun:
        """
        Manual sync entry point.

        Raises:
            SyncAlreadyInProgressError: an overlapping sync is active and
                ``force`` is not set, or the exact scope is active
        """
        entity_type = EntityType(entity_type)
        logger.info(
            "Manual sync triggered",
            entity_type=entity_type.value,
            entity_id=entity_id,
            force=force,
        )
        return await self.run_tracked(
            entity_type, entity_id, TriggerSource.MANUAL, exclusive=not force
        )
