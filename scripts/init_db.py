#!/usr/bin/env python3
"""
Database initialisation script.

Creates the cache and sync ledger tables for AdSync.

Usage:
    python scripts/init_db.py [--drop-existing]
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from adsync.common.config import get_settings
from adsync.common.database import db
from adsync.common.logger import get_logger

logger = get_logger(__name__)


async def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Initialize the AdSync cache database")
    parser.add_argument(
        "--drop-existing",
        action="store_true",
        help="Drop existing tables before creating",
    )

    args = parser.parse_args()

    settings = get_settings()
    logger.info("Initializing database", url=settings.database.async_url.split("@")[-1])

    await db.init()
    try:
        await db.create_tables(drop_existing=args.drop_existing)
    finally:
        await db.close()

    logger.info("Database initialization complete")


if __name__ == "__main__":
    asyncio.run(main())
