#!/usr/bin/env python3
"""
Inventory Scan Utility.

Rebuilds the asset/usage inventory from the public and private file stores.
The scan runs phase by phase in chunks and swaps the new inventory in only
when every phase succeeds; on failure the previous inventory is kept.

Usage:
    # Full scan with the configured chunk size
    python -m digital_asset_inventory.commands.scan_inventory

    # Smaller chunks
    python -m digital_asset_inventory.commands.scan_inventory --chunk-size 20

    # Discard leftover temporary rows from an interrupted scan
    python -m digital_asset_inventory.commands.scan_inventory --clear-temporary
"""

import asyncio
import logging
import sys
from typing import Optional

from digital_asset_inventory.services.content_source import FilesystemContentSource
from digital_asset_inventory.services.database_service import database_service
from digital_asset_inventory.services.scanner_service import ScanError, ScanProgress, scanner_service

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


def report_progress(progress: ScanProgress) -> None:
    logger.info(f"  {progress.phase.value}: {progress.processed}/{progress.total}")


async def scan_inventory(chunk_size: Optional[int] = None, clear_temporary: bool = False) -> int:
    """
    Run a full inventory scan (or only clear temporary rows).

    Returns:
        Process exit code (0 success, 1 scan failure)
    """
    await database_service.init_db()

    if clear_temporary:
        async with database_service.get_session() as session:
            cleared = await scanner_service.clear_temporary_items(session)
        logger.info(f"Cleared {cleared['assets']} temporary assets and {cleared['usage']} usage rows")
        return 0

    logger.info("=" * 70)
    logger.info("Starting inventory scan...")
    logger.info("=" * 70)

    try:
        async with database_service.get_session() as session:
            stats = await scanner_service.run_full_scan(
                session,
                FilesystemContentSource(),
                chunk_size=chunk_size,
                progress=report_progress,
            )
    except ScanError as e:
        logger.error(f"Scan failed, previous inventory kept: {e}")
        return 1

    logger.info("=" * 70)
    logger.info("Scan complete")
    logger.info(f"  Assets in inventory: {stats['promoted_assets']}")
    if stats.get("orphan_references"):
        logger.info(f"  References from orphaned content (not counted as usage): {stats['orphan_references']}")
    for phase, count in stats["processed"].items():
        logger.info(f"  {phase}: {count} items")
    if stats["archive_problems"]:
        logger.warning(f"  Archived files with problems: {len(stats['archive_problems'])}")
    logger.info("=" * 70)
    return 0


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(
        description="Rebuild the digital asset inventory from the file stores"
    )
    parser.add_argument(
        "--chunk-size",
        type=int,
        default=None,
        help="Source rows processed per chunk (default: SCAN_CHUNK_SIZE)"
    )
    parser.add_argument(
        "--clear-temporary",
        action="store_true",
        help="Only discard temporary rows left by an interrupted scan"
    )

    args = parser.parse_args()

    exit_code = asyncio.run(
        scan_inventory(chunk_size=args.chunk_size, clear_temporary=args.clear_temporary)
    )
    sys.exit(exit_code)
