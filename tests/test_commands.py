"""
Tests for the command line utilities and Celery task wiring.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio

from digital_asset_inventory import tasks
from digital_asset_inventory.celery_app import app
from digital_asset_inventory.commands import reconcile_archives, scan_inventory
from digital_asset_inventory.services.content_source import FilesystemContentSource
from digital_asset_inventory.services.database_service import DatabaseService
from digital_asset_inventory.services.scanner_service import ScanError, ScanPhase


@pytest_asyncio.fixture
async def db(tmp_path):
    service = DatabaseService(f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
    await service.init_db()
    yield service
    await service.close()


class TestScanInventoryCommand:

    @pytest.mark.asyncio
    async def test_successful_scan(self, db):
        scanner = MagicMock()
        scanner.run_full_scan = AsyncMock(return_value={
            "promoted_assets": 3,
            "processed": {"managed_files": 0, "orphan_files": 3},
            "archive_problems": [],
        })

        with patch.object(scan_inventory, "database_service", db), \
                patch.object(scan_inventory, "scanner_service", scanner):
            exit_code = await scan_inventory.scan_inventory(chunk_size=10)

        assert exit_code == 0
        args, kwargs = scanner.run_full_scan.call_args
        assert isinstance(args[1], FilesystemContentSource)
        assert kwargs["chunk_size"] == 10

    @pytest.mark.asyncio
    async def test_failed_scan_exit_code(self, db):
        scanner = MagicMock()
        scanner.run_full_scan = AsyncMock(side_effect=ScanError("boom", phase=ScanPhase.CONTENT))

        with patch.object(scan_inventory, "database_service", db), \
                patch.object(scan_inventory, "scanner_service", scanner):
            assert await scan_inventory.scan_inventory() == 1

    @pytest.mark.asyncio
    async def test_clear_temporary_only(self, db):
        scanner = MagicMock()
        scanner.clear_temporary_items = AsyncMock(return_value={"assets": 2, "usage": 5})
        scanner.run_full_scan = AsyncMock()

        with patch.object(scan_inventory, "database_service", db), \
                patch.object(scan_inventory, "scanner_service", scanner):
            assert await scan_inventory.scan_inventory(clear_temporary=True) == 0

        scanner.run_full_scan.assert_not_called()


class TestReconcileArchivesCommand:

    @pytest.mark.asyncio
    async def test_reconcile_empty_registry(self, db):
        with patch.object(reconcile_archives, "database_service", db):
            assert await reconcile_archives.reconcile_archives(pending_checksums=True) == 0

    @pytest.mark.asyncio
    async def test_dry_run_changes_nothing(self, db):
        archives = MagicMock()
        archives.reconcile_all = AsyncMock()
        archives.process_pending_checksums = AsyncMock()

        with patch.object(reconcile_archives, "database_service", db), \
                patch.object(reconcile_archives, "archive_service", archives):
            assert await reconcile_archives.reconcile_archives(pending_checksums=True, dry_run=True) == 0

        archives.reconcile_all.assert_not_called()
        archives.process_pending_checksums.assert_not_called()


class TestCeleryTasks:

    def test_tasks_registered_and_routed(self):
        for name in (
            "digital_asset_inventory.tasks.compute_archive_checksum_task",
            "digital_asset_inventory.tasks.process_pending_checksums_task",
            "digital_asset_inventory.tasks.reconcile_archives_task",
            "digital_asset_inventory.tasks.run_inventory_scan_task",
        ):
            assert name in app.tasks
            assert name in app.conf.task_routes
        assert app.conf.task_routes["digital_asset_inventory.tasks.run_inventory_scan_task"] == {"queue": "inventory"}

    def test_nightly_schedule(self):
        schedule = app.conf.beat_schedule
        assert schedule["reconcile-archives-nightly"]["task"] == "digital_asset_inventory.tasks.reconcile_archives_task"
        assert "pending-checksums-nightly" in schedule

    @pytest.mark.asyncio
    async def test_checksum_for_missing_archive(self, db):
        with patch.object(tasks, "database_service", db):
            assert await tasks._compute_archive_checksum(999) is False

    @pytest.mark.asyncio
    async def test_reconcile_helper(self, db):
        with patch.object(tasks, "database_service", db):
            assert await tasks._reconcile_archives() == {"checked": 0, "changed": 0}
