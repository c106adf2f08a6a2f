"""
Tests for the inventory scanner.

Each test builds an InMemoryContentSource over real files in a temporary
public/private root and runs the scanner against a per-test database.
"""

from unittest.mock import patch

import pytest

from digital_asset_inventory.database.models import EmbedMethod, OrphanContext, SourceType
from digital_asset_inventory.services.asset_service import asset_service
from digital_asset_inventory.services.content_source import (
    FileReference,
    FilesystemContentSource,
    InMemoryContentSource,
    ManagedFile,
    MenuLink,
    RemoteMedia,
    TextField,
)
from digital_asset_inventory.services.scanner_service import PHASE_ORDER, ScanError, ScanPhase


@pytest.fixture
def site_files(make_file):
    make_file("docs/report.pdf", b"managed report")
    make_file("docs/orphan.docx", b"orphaned document")
    make_file("styles/thumbnail/report.jpg", b"derivative")
    make_file("secret.pdf", b"private file", private=True)


@pytest.fixture
def source(resolver, site_files):
    return InMemoryContentSource(
        managed_files=[
            ManagedFile(fid=1, uri="public://docs/report.pdf", filename="report.pdf",
                        mime_type="application/pdf", size=14),
        ],
        file_usage={1: [FileReference("node", 10, "field_document")]},
        text_fields=[
            TextField(
                "node", 11, "body",
                '<p><a href="/sites/default/files/docs/report.pdf">Report</a></p>'
                '<iframe src="https://www.youtube.com/embed/dQw4w9WgXcQ"></iframe>',
            ),
            TextField("node", 12, "field_link", "https://docs.google.com/document/d/abc/edit", is_link=True),
            TextField("node", 13, "body", '<a href="https://example.com/about">About us</a>'),
        ],
        remote_media=[
            RemoteMedia(media_id=5, url="https://vimeo.com/123456",
                        references=[FileReference("node", 14, "field_media", EmbedMethod.MEDIA_EMBED)]),
        ],
        menu_links=[MenuLink(link_id=3, menu_name="footer", url="/system/files/secret.pdf")],
        filesystem=FilesystemContentSource(resolver),
    )


async def permanent_paths(session):
    return sorted(a.file_path for a in await asset_service.list_assets(session))


class TestFullScan:
    """Test a complete scan and promotion."""

    @pytest.mark.asyncio
    async def test_scan_builds_inventory(self, session, scanner, source):
        stats = await scanner.run_full_scan(session, source, chunk_size=2)

        assert await permanent_paths(session) == [
            "https://docs.google.com/document/d/abc/edit",
            "https://vimeo.com/123456",
            "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
            "private://secret.pdf",
            "public://docs/orphan.docx",
            "public://docs/report.pdf",
        ]
        assert stats["promoted_assets"] == 6
        assert stats["processed"] == {
            "managed_files": 1,
            "orphan_files": 3,
            "content": 3,
            "remote_media": 1,
            "menu_links": 1,
        }
        assert await asset_service.count_assets(session, is_temporary=True) == 0
        assert await asset_service.count_usage_records(session, is_temporary=True) == 0

    @pytest.mark.asyncio
    async def test_asset_classification(self, session, scanner, source):
        await scanner.run_full_scan(session, source)

        report = await asset_service.find_by_managed_file_id(session, 1)
        assert report.asset_type == "pdf"
        assert report.category == "Documents"
        assert report.source_type == SourceType.FILE_MANAGED.value

        orphan = await asset_service.find_by_path(session, "public://docs/orphan.docx")
        assert orphan.asset_type == "word"
        assert orphan.source_type == SourceType.FILESYSTEM_ONLY.value

        secret = await asset_service.find_by_path(session, "private://secret.pdf")
        assert secret.is_private is True

        video = await asset_service.find_by_path(session, "https://vimeo.com/123456")
        assert video.category == "Videos"
        assert video.media_id == 5
        assert video.source_type == SourceType.MEDIA_MANAGED.value

    @pytest.mark.asyncio
    async def test_usage_records(self, session, scanner, source):
        await scanner.run_full_scan(session, source)

        report = await asset_service.find_by_managed_file_id(session, 1)
        usage = await asset_service.list_usage(session, report.id)
        assert sorted((u.entity_id, u.field_name, u.embed_method) for u in usage) == [
            (10, "field_document", EmbedMethod.FIELD_REFERENCE.value),
            (11, "body", EmbedMethod.TEXT_LINK.value),
        ]
        assert await asset_service.get_usage_count(session, 1, None) == 2

        youtube = await asset_service.find_by_path(session, "https://www.youtube.com/watch?v=dQw4w9WgXcQ")
        [embed] = await asset_service.list_usage(session, youtube.id)
        assert embed.embed_method == EmbedMethod.INLINE_IFRAME.value

        secret = await asset_service.find_by_path(session, "private://secret.pdf")
        [menu] = await asset_service.list_usage(session, secret.id)
        assert menu.entity_type == "menu_link_content"
        assert menu.field_name == "footer"
        assert menu.embed_method == EmbedMethod.MENU_LINK.value

    @pytest.mark.asyncio
    async def test_rescan_replaces_previous_inventory(self, session, scanner, source):
        await scanner.run_full_scan(session, source)
        source.text_fields = []
        source.remote_media = []

        stats = await scanner.run_full_scan(session, source)

        assert stats["replaced_assets"] == 6
        assert "https://vimeo.com/123456" not in await permanent_paths(session)
        assert await asset_service.get_usage_count(session, 1, None) == 1

    @pytest.mark.asyncio
    async def test_progress_reports_phases_in_order(self, session, scanner, source):
        seen = []
        await scanner.run_full_scan(session, source, chunk_size=1, progress=lambda p: seen.append(p))

        phases = []
        for progress in seen:
            if not phases or phases[-1] != progress.phase:
                phases.append(progress.phase)
        assert phases == list(PHASE_ORDER)
        assert seen[-1].processed == seen[-1].total


class TestScanFailure:
    """Test that a failed scan keeps the previous inventory."""

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_inventory(self, session, scanner, source):
        await scanner.run_full_scan(session, source)
        before = await permanent_paths(session)
        usage_before = await asset_service.count_usage_records(session)

        async def broken(offset, limit):
            raise RuntimeError("content store unavailable")

        source.list_text_fields = broken

        with pytest.raises(ScanError) as exc_info:
            await scanner.run_full_scan(session, source)

        assert exc_info.value.phase == ScanPhase.CONTENT
        assert await permanent_paths(session) == before
        assert await asset_service.count_usage_records(session) == usage_before
        assert await asset_service.count_assets(session, is_temporary=True) == 0
        assert await asset_service.count_usage_records(session, is_temporary=True) == 0

    @pytest.mark.asyncio
    async def test_leftover_temporary_rows_are_cleared(self, session, scanner, source):
        await scanner.scan_chunk(session, source, ScanPhase.MANAGED_FILES, 0, 10)
        await session.commit()
        assert await asset_service.count_assets(session, is_temporary=True) == 1

        cleared = await scanner.clear_temporary_items(session)

        assert cleared == {"assets": 1, "usage": 1, "orphan_references": 0}
        assert await asset_service.count_assets(session, is_temporary=True) == 0


class TestChunkedPhases:
    """Test phase-level entry points."""

    @pytest.mark.asyncio
    async def test_count_phase(self, scanner, source):
        assert await scanner.count_phase(source, ScanPhase.MANAGED_FILES) == 1
        assert await scanner.count_phase(source, ScanPhase.ORPHAN_FILES) == 3
        assert await scanner.count_phase(source, "content") == 3

    @pytest.mark.asyncio
    async def test_orphan_phase_skips_known_files(self, session, scanner, source):
        await scanner.scan_chunk(session, source, ScanPhase.MANAGED_FILES, 0, 10)
        handled = await scanner.scan_chunk(session, source, ScanPhase.ORPHAN_FILES, 0, 10)

        assert handled == 3
        assert await asset_service.count_assets(session, is_temporary=True) == 3
        assert await asset_service.count_assets(session) == 0

    @pytest.mark.asyncio
    async def test_repeated_reference_increments_count(self, session, scanner, source):
        source.text_fields = [
            TextField("node", 11, "body", '<a href="/sites/default/files/docs/report.pdf">A</a>'),
            TextField("node", 11, "body", '<a href="/sites/default/files/docs/report.pdf">B</a>'),
        ]
        await scanner.scan_chunk(session, source, ScanPhase.MANAGED_FILES, 0, 10)
        await scanner.scan_chunk(session, source, ScanPhase.CONTENT, 0, 10)

        report = await asset_service.find_by_managed_file_id(session, 1, is_temporary=True)
        links = [u for u in await asset_service.list_usage(session, report.id) if u.entity_id == 11]
        assert len(links) == 1
        assert links[0].count == 2

    @pytest.mark.asyncio
    async def test_clear_usage_records(self, session, scanner, source):
        await scanner.run_full_scan(session, source)
        assert await asset_service.count_usage_records(session) > 0

        await scanner.clear_usage_records(session)

        assert await asset_service.count_usage_records(session) == 0
        assert await asset_service.count_assets(session) == 6


class TestArchiveValidationAfterScan:
    """Test that archived files are re-checked against the new inventory."""

    @pytest.mark.asyncio
    async def test_new_usage_flags_archived_file(self, session, scanner, archives, source):
        source.text_fields = []
        source.file_usage = {}
        await scanner.run_full_scan(session, source)

        asset = await asset_service.find_by_managed_file_id(session, 1)
        record = await archives.mark_for_archive(session, asset, "reference")
        result = await archives.execute_archive(session, record, "admin")
        assert result.success
        assert record.flag_usage is False

        source.text_fields = [
            TextField("node", 20, "body", '<a href="/sites/default/files/docs/report.pdf">Old report</a>'),
        ]
        stats = await scanner.run_full_scan(session, source)

        assert record.flag_usage is True
        assert [p["id"] for p in stats["archive_problems"]] == [record.id]


class TestOrphanedHostReferences:
    """Test that references from orphaned content are kept apart from usage."""

    @pytest.fixture
    def orphaned_source(self, source):
        source.file_usage = {
            1: [FileReference("paragraph", 30, "field_file",
                              orphan_context=OrphanContext.MISSING_PARENT_ENTITY, bundle="accordion_item")],
        }
        source.text_fields = [
            TextField("paragraph", 31, "field_text", '<a href="/sites/default/files/docs/report.pdf">Old</a>',
                      orphan_context=OrphanContext.DETACHED_COMPONENT, bundle="text"),
        ]
        return source

    @pytest.mark.asyncio
    async def test_orphan_references_are_not_usage(self, session, scanner, orphaned_source):
        stats = await scanner.run_full_scan(session, orphaned_source)

        report = await asset_service.find_by_managed_file_id(session, 1)
        assert await asset_service.list_usage(session, report.id) == []
        assert await asset_service.get_usage_count(session, 1, None) == 0

        orphans = await asset_service.list_orphan_references(session, report.id)
        assert sorted((o.source_entity_id, o.source_bundle, o.reference_context, o.embed_method) for o in orphans) == [
            (30, "accordion_item", "missing_parent_entity", EmbedMethod.FIELD_REFERENCE.value),
            (31, "text", "detached_component", EmbedMethod.TEXT_LINK.value),
        ]
        assert stats["orphan_references"] == 2

    @pytest.mark.asyncio
    async def test_rescan_replaces_orphan_references(self, session, scanner, orphaned_source):
        await scanner.run_full_scan(session, orphaned_source)
        await scanner.run_full_scan(session, orphaned_source)

        assert await asset_service.count_orphan_references(session) == 2
        assert await asset_service.count_orphan_references(session, is_temporary=True) == 0

    @pytest.mark.asyncio
    async def test_orphan_references_do_not_block_archiving(self, session, scanner, archives, orphaned_source):
        await scanner.run_full_scan(session, orphaned_source)

        asset = await asset_service.find_by_managed_file_id(session, 1)
        record = await archives.mark_for_archive(session, asset, "reference")
        result = await archives.execute_archive(session, record, "public")

        assert result.success, result.issues
        assert record.flag_usage is False
        assert record.usage_count_at_archive == 0

    @pytest.mark.asyncio
    async def test_failed_scan_discards_temporary_orphan_references(self, session, scanner, orphaned_source):
        async def broken(offset, limit):
            raise RuntimeError("menu store unavailable")

        orphaned_source.list_menu_links = broken

        with pytest.raises(ScanError):
            await scanner.run_full_scan(session, orphaned_source)

        assert await asset_service.count_orphan_references(session, is_temporary=True) == 0
        assert await asset_service.count_orphan_references(session) == 0


class TestFilesystemWalk:
    """Test that the orphan file phase walks the file roots once per scan."""

    @pytest.mark.asyncio
    async def test_one_walk_per_scan(self, session, scanner, source):
        walk = FilesystemContentSource._walk

        with patch.object(FilesystemContentSource, "_walk", autospec=True, side_effect=walk) as mock_walk:
            stats = await scanner.run_full_scan(session, source, chunk_size=1)

        # One call per root (public and private)
        assert mock_walk.call_count == 2
        assert stats["processed"]["orphan_files"] == 3

    @pytest.mark.asyncio
    async def test_pages_are_sliced_from_the_walk(self, resolver, site_files):
        filesystem = FilesystemContentSource(resolver)

        total = await filesystem.count_filesystem_files()
        pages = [await filesystem.list_filesystem_files(offset, 2) for offset in range(0, total, 2)]

        assert total == 3
        assert [len(page) for page in pages] == [2, 1]
        assert sorted(f.uri for page in pages for f in page) == [
            "private://secret.pdf",
            "public://docs/orphan.docx",
            "public://docs/report.pdf",
        ]
