"""
Celery tasks for inventory scans and archive maintenance.

Each task runs its async service call with ``asyncio.run`` inside a fresh
database session.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

from celery import shared_task

from .celery_app import app as celery_app  # noqa: F401
from .services.archive_record_service import archive_record_service
from .services.archive_service import archive_service
from .services.content_source import FilesystemContentSource
from .services.database_service import database_service
from .services.scanner_service import scanner_service

logger = logging.getLogger("dai.tasks")


# ============================================================================
# ARCHIVE MAINTENANCE
# ============================================================================

async def _compute_archive_checksum(archive_id: int) -> bool:
    async with database_service.get_session() as session:
        record = await archive_record_service.get_by_id(session, archive_id)
        if record is None:
            logger.warning(f"Archive {archive_id} no longer exists; checksum skipped")
            return False
        return await archive_service.compute_pending_checksum(session, record)


@shared_task(bind=True, name="digital_asset_inventory.tasks.compute_archive_checksum_task", autoretry_for=(OSError,), retry_backoff=True, retry_kwargs={"max_retries": 3})
def compute_archive_checksum_task(self, archive_id: int) -> bool:
    """
    Compute the deferred checksum of one archived file.

    Args:
        archive_id: ArchiveRecord id

    Returns:
        bool: True if a checksum was stored
    """
    logger.info(f"Computing deferred checksum for archive {archive_id}")
    return asyncio.run(_compute_archive_checksum(archive_id))


async def _process_pending_checksums() -> Dict[str, int]:
    async with database_service.get_session() as session:
        return await archive_service.process_pending_checksums(session)


@shared_task(bind=True, name="digital_asset_inventory.tasks.process_pending_checksums_task")
def process_pending_checksums_task(self) -> Dict[str, int]:
    """Sweep up every archive whose checksum is still pending."""
    stats = asyncio.run(_process_pending_checksums())
    logger.info(f"Pending checksum sweep: {stats}")
    return stats


async def _reconcile_archives() -> Dict[str, int]:
    async with database_service.get_session() as session:
        return await archive_service.reconcile_all(session)


@shared_task(bind=True, name="digital_asset_inventory.tasks.reconcile_archives_task")
def reconcile_archives_task(self) -> Dict[str, int]:
    """Re-check usage, presence and integrity of every queued/archived record."""
    return asyncio.run(_reconcile_archives())


# ============================================================================
# INVENTORY SCAN
# ============================================================================

async def _run_inventory_scan(chunk_size: Optional[int] = None) -> Dict[str, Any]:
    async with database_service.get_session() as session:
        stats = await scanner_service.run_full_scan(session, FilesystemContentSource(), chunk_size=chunk_size)
    return {
        "promoted_assets": stats["promoted_assets"],
        "processed": stats["processed"],
        "archive_problems": len(stats["archive_problems"]),
    }


@shared_task(bind=True, name="digital_asset_inventory.tasks.run_inventory_scan_task")
def run_inventory_scan_task(self, chunk_size: Optional[int] = None) -> Dict[str, Any]:
    """
    Rebuild the inventory from the file stores.

    On failure the previous inventory stays in place and the ScanError is
    re-raised so the task is marked failed.
    """
    logger.info("Starting inventory scan")
    try:
        return asyncio.run(_run_inventory_scan(chunk_size))
    except Exception as e:
        logger.error(f"Inventory scan task failed: {e}")
        raise
