#!/usr/bin/env python3
"""
Run one tracked sync from the command line.

Usage:
    python scripts/run_sync.py full
    python scripts/run_sync.py advertisers --entity-id 9001
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from adsync.api_server.services.sync_service import SyncService
from adsync.common.config import get_settings
from adsync.common.database import db
from adsync.common.exceptions import AdSyncError
from adsync.common.logger import get_logger
from adsync.common.utils import json_dumps
from adsync.models import EntityType, TriggerSource
from adsync.repositories import Repositories
from adsync.upstream import BroadstreetClient

logger = get_logger(__name__)


async def run(entity_type: EntityType, entity_id: int | None, create_tables: bool) -> int:
    settings = get_settings()
    await db.init()
    if create_tables:
        await db.create_tables()

    client = BroadstreetClient.from_settings(settings.upstream)
    sync_service = SyncService(client, Repositories.create(db))
    try:
        sync_run = await sync_service.run_tracked(entity_type, entity_id, TriggerSource.WORKFLOW)
    except AdSyncError as e:
        logger.error("Sync failed", entity_type=entity_type.value, error=e.message)
        return 1
    finally:
        await client.close()
        await db.close()

    print(json_dumps({
        "sync_id": sync_run.record.id,
        "type": entity_type.value,
        "entity_id": entity_id,
        "summary": sync_run.total.as_dict(),
        "result": {name: result.as_dict() for name, result in sync_run.results.items()},
    }))
    return 0


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Run an AdSync sync")
    parser.add_argument(
        "type",
        choices=[t.value for t in EntityType],
        help="Sync type",
    )
    parser.add_argument(
        "--entity-id",
        type=int,
        default=None,
        help="Parent scope (network id, or advertiser id for campaigns)",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables first",
    )

    args = parser.parse_args()
    sys.exit(asyncio.run(run(EntityType(args.type), args.entity_id, args.create_tables)))


if __name__ == "__main__":
    main()
