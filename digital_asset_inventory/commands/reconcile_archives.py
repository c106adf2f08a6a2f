#!/usr/bin/env python3
"""
Archive Reconciliation Utility.

Re-checks every queued and archived record: live usage, file presence and
checksum integrity. Integrity violations void Legacy Archive exemptions and
remove General Archives, exactly as the scheduled reconciliation does.

Usage:
    # Reconcile all queued/archived records
    python -m digital_asset_inventory.commands.reconcile_archives

    # Also compute checksums deferred for large files
    python -m digital_asset_inventory.commands.reconcile_archives --pending-checksums

    # Report problems without changing anything
    python -m digital_asset_inventory.commands.reconcile_archives --dry-run
"""

import asyncio
import logging
import sys

from digital_asset_inventory.services.archive_record_service import archive_record_service
from digital_asset_inventory.services.archive_service import archive_service
from digital_asset_inventory.services.database_service import database_service

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


async def report_archive_status() -> int:
    """Log status counts and records already carrying warnings."""
    async with database_service.get_session() as session:
        counts = await archive_record_service.count_by_status(session)
        problems = await archive_record_service.get_archived_with_problems(session)
        pending = await archive_record_service.get_archives_with_pending_checksums(session)

    for status, count in counts.items():
        logger.info(f"  {status}: {count}")
    logger.info(f"  pending checksums: {len(pending)}")
    for record in problems:
        logger.warning(f"  [{record.id}] {record.file_name}: {', '.join(record.warning_labels())}")
    return len(problems)


async def reconcile_archives(pending_checksums: bool = False, dry_run: bool = False) -> int:
    """
    Reconcile archive records.

    Returns:
        Process exit code
    """
    await database_service.init_db()

    if dry_run:
        logger.info("Dry run: current archive status")
        await report_archive_status()
        return 0

    if pending_checksums:
        async with database_service.get_session() as session:
            stats = await archive_service.process_pending_checksums(session)
        logger.info(f"Deferred checksums: {stats['completed']} of {stats['pending']} completed")

    async with database_service.get_session() as session:
        stats = await archive_service.reconcile_all(session)
    logger.info(f"Reconciled {stats['checked']} records, {stats['changed']} changed")

    await report_archive_status()
    return 0


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(
        description="Reconcile archive records against files and usage"
    )
    parser.add_argument(
        "--pending-checksums",
        action="store_true",
        help="Compute checksums deferred for large files first"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report current status without changing anything"
    )

    args = parser.parse_args()

    exit_code = asyncio.run(
        reconcile_archives(pending_checksums=args.pending_checksums, dry_run=args.dry_run)
    )
    sys.exit(exit_code)
