# digital_asset_inventory/services/scanner_service.py
"""
Inventory scanner service.

Rebuilds the whole asset/usage inventory from the content source on every
run and swaps it in atomically:

    1. Every phase writes assets, usage rows and orphan references with
       is_temporary=True. The permanent inventory stays untouched and fully
       queryable.
    2. On success, promote_temporary_items() deletes the permanent usage and
       orphan rows, then the permanent assets, then flips the temporary rows.
    3. On failure, clear_temporary_items() deletes the temporary usage and
       orphan rows, then the temporary assets, leaving the previous inventory
       intact.

Phases run in a fixed order and are chunked (offset/limit) so a batch or
job driver can process one bounded chunk per invocation:

    managed_files -> orphan_files -> content -> remote_media -> menu_links

Usage:
    from digital_asset_inventory.services.scanner_service import scanner_service

    stats = await scanner_service.run_full_scan(session, source)

    # Or drive chunks yourself
    total = await scanner_service.count_phase(source, ScanPhase.MANAGED_FILES)
    await scanner_service.scan_chunk(session, source, ScanPhase.MANAGED_FILES, 0, 50)
"""

import enum
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database.models import EmbedMethod, SourceType
from .archive_service import ArchiveService, archive_service
from .asset_classifier import AssetClassifier, asset_classifier
from .asset_service import AssetService, asset_service, url_hash
from .content_source import ContentSource, FileReference, FilesystemFile, ManagedFile
from .file_path_resolver import PRIVATE_SCHEME, FilePathResolver, file_path_resolver

logger = logging.getLogger("dai.scanner")


class ScanPhase(str, enum.Enum):
    MANAGED_FILES = "managed_files"
    ORPHAN_FILES = "orphan_files"
    CONTENT = "content"
    REMOTE_MEDIA = "remote_media"
    MENU_LINKS = "menu_links"


PHASE_ORDER = (
    ScanPhase.MANAGED_FILES,
    ScanPhase.ORPHAN_FILES,
    ScanPhase.CONTENT,
    ScanPhase.REMOTE_MEDIA,
    ScanPhase.MENU_LINKS,
)

MENU_LINK_ENTITY_TYPE = "menu_link_content"


class ScanError(RuntimeError):
    """A scan phase failed; the temporary inventory has been discarded."""

    def __init__(self, message: str, phase: Optional[ScanPhase] = None):
        self.phase = phase
        super().__init__(message)


@dataclass
class ScanProgress:
    phase: ScanPhase
    processed: int
    total: int


ProgressCallback = Callable[[ScanProgress], Any]


class ScannerService:
    """
    Multi-phase inventory scanner with temporary staging.

    Args:
        assets: Asset/usage repository
        classifier: Asset type and category classifier
        resolver: URL/stream URI resolver
        archives: Archive service used to validate archived files after promotion
    """

    def __init__(
        self,
        assets: Optional[AssetService] = None,
        classifier: Optional[AssetClassifier] = None,
        resolver: Optional[FilePathResolver] = None,
        archives: Optional[ArchiveService] = None,
    ):
        self.assets = assets or asset_service
        self.classifier = classifier or asset_classifier
        self.resolver = resolver or file_path_resolver
        self.archives = archives or archive_service

    # =========================================================================
    # PHASE DISPATCH
    # =========================================================================

    def _phase_handlers(self) -> Dict[ScanPhase, tuple]:
        return {
            ScanPhase.MANAGED_FILES: (self.count_managed_files, self.scan_managed_files_chunk),
            ScanPhase.ORPHAN_FILES: (self.count_orphan_files, self.scan_orphan_files_chunk),
            ScanPhase.CONTENT: (self.count_content, self.scan_content_chunk),
            ScanPhase.REMOTE_MEDIA: (self.count_remote_media, self.scan_remote_media_chunk),
            ScanPhase.MENU_LINKS: (self.count_menu_links, self.scan_menu_links_chunk),
        }

    async def count_phase(self, source: ContentSource, phase: ScanPhase) -> int:
        count_fn, _ = self._phase_handlers()[ScanPhase(phase)]
        return await count_fn(source)

    async def scan_chunk(
        self,
        session: AsyncSession,
        source: ContentSource,
        phase: ScanPhase,
        offset: int,
        limit: int,
        is_temp: bool = True,
    ) -> int:
        """Process one chunk of a phase; returns the number of source rows handled."""
        _, chunk_fn = self._phase_handlers()[ScanPhase(phase)]
        return await chunk_fn(session, source, offset, limit, is_temp)

    # =========================================================================
    # PHASE 1: MANAGED FILES
    # =========================================================================

    async def count_managed_files(self, source: ContentSource) -> int:
        return await source.count_managed_files()

    async def scan_managed_files_chunk(
        self, session: AsyncSession, source: ContentSource, offset: int, limit: int, is_temp: bool = True
    ) -> int:
        files = await source.list_managed_files(offset, limit)
        for managed in files:
            asset = await self._upsert_managed_file(session, managed, is_temp)
            for reference in await source.managed_file_usage(managed.fid):
                await self._add_reference(session, asset.id, reference, is_temp)
        return len(files)

    async def _add_reference(
        self, session: AsyncSession, asset_id: int, reference: FileReference, is_temp: bool
    ) -> None:
        if reference.orphan_context:
            await self.assets.add_orphan_reference(
                session,
                asset_id,
                reference.entity_type,
                reference.entity_id,
                reference.field_name,
                reference.embed_method,
                reference.orphan_context,
                bundle=reference.bundle,
                is_temporary=is_temp,
            )
        else:
            await self.assets.add_usage(
                session,
                asset_id,
                reference.entity_type,
                reference.entity_id,
                reference.field_name,
                reference.embed_method,
                is_temporary=is_temp,
            )

    async def _upsert_managed_file(self, session: AsyncSession, managed: ManagedFile, is_temp: bool):
        asset_type = self.classifier.map_mime_to_asset_type(managed.mime_type)
        return await self.assets.upsert_asset(
            session,
            file_path=managed.uri,
            file_name=managed.filename,
            asset_type=asset_type,
            category=self.classifier.get_category(asset_type),
            source_type=SourceType.MEDIA_MANAGED if managed.media_id else SourceType.FILE_MANAGED,
            mime_type=managed.mime_type,
            managed_file_id=managed.fid,
            media_id=managed.media_id,
            file_size=managed.size or 0,
            is_private=managed.uri.startswith(PRIVATE_SCHEME),
            is_temporary=is_temp,
        )

    # =========================================================================
    # PHASE 2: ORPHAN FILESYSTEM FILES
    # =========================================================================

    async def count_orphan_files(self, source: ContentSource) -> int:
        return await source.count_filesystem_files()

    async def scan_orphan_files_chunk(
        self, session: AsyncSession, source: ContentSource, offset: int, limit: int, is_temp: bool = True
    ) -> int:
        """Register files on disk that the CMS file store does not know about."""
        files: List[FilesystemFile] = await source.list_filesystem_files(offset, limit)
        for found in files:
            if await self.assets.find_by_url_hash(session, url_hash(found.uri), is_temporary=is_temp):
                continue

            extension = found.path.suffix.lstrip(".")
            mime_type = self.classifier.extension_to_mime(extension)
            asset_type = self.classifier.map_mime_to_asset_type(mime_type)
            await self.assets.upsert_asset(
                session,
                file_path=found.uri,
                file_name=found.path.name,
                asset_type=asset_type,
                category=self.classifier.get_category(asset_type),
                source_type=SourceType.FILESYSTEM_ONLY,
                mime_type=mime_type,
                file_size=found.size,
                is_private=found.is_private,
                is_temporary=is_temp,
            )
        return len(files)

    # =========================================================================
    # PHASE 3: CONTENT TEXT AND LINK FIELDS
    # =========================================================================

    async def count_content(self, source: ContentSource) -> int:
        return await source.count_text_fields()

    async def scan_content_chunk(
        self, session: AsyncSession, source: ContentSource, offset: int, limit: int, is_temp: bool = True
    ) -> int:
        fields = await source.list_text_fields(offset, limit)
        for text_field in fields:
            if text_field.is_link:
                references = [(text_field.value, EmbedMethod.LINK_FIELD)]
            else:
                references = self.classifier.extract_references(text_field.value)

            for url, method in references:
                reference = FileReference(
                    text_field.entity_type,
                    text_field.entity_id,
                    text_field.field_name,
                    method,
                    orphan_context=text_field.orphan_context,
                    bundle=text_field.bundle,
                )
                await self._record_reference(session, url, reference, is_temp)
        return len(fields)

    async def _record_reference(
        self, session: AsyncSession, url: str, reference: FileReference, is_temp: bool
    ) -> bool:
        """
        Attach a usage row (or orphan reference) for a referenced local file or
        known external resource.

        Local files must already be in this scan's inventory. External URLs
        are only tracked when they match a configured asset type.
        """
        stream_uri = self.resolver.url_path_to_stream_uri(url)
        if stream_uri:
            asset = await self.assets.find_by_url_hash(session, url_hash(stream_uri), is_temporary=is_temp)
            if asset is None:
                logger.debug(
                    f"Reference to unknown local file {stream_uri} in "
                    f"{reference.entity_type}:{reference.entity_id}"
                )
                return False
        else:
            asset = await self._upsert_external(session, url, is_temp)
            if asset is None:
                return False

        await self._add_reference(session, asset.id, reference, is_temp)
        return True

    async def _upsert_external(
        self, session: AsyncSession, url: str, is_temp: bool, media_id: Optional[int] = None
    ):
        url = url.strip()
        if url.startswith("//"):
            url = "https:" + url
        if not url.lower().startswith(("http://", "https://")):
            return None

        video = self.classifier.normalize_video_url(url)
        canonical = video["url"] if video else url
        asset_type = self.classifier.match_url_to_asset_type(canonical)
        if asset_type == "other":
            return None

        return await self.assets.upsert_asset(
            session,
            file_path=canonical,
            file_name=canonical,
            asset_type=asset_type,
            category=self.classifier.get_category(asset_type),
            source_type=SourceType.MEDIA_MANAGED if media_id else SourceType.EXTERNAL,
            media_id=media_id,
            is_temporary=is_temp,
        )

    # =========================================================================
    # PHASE 4: REMOTE MEDIA
    # =========================================================================

    async def count_remote_media(self, source: ContentSource) -> int:
        return await source.count_remote_media()

    async def scan_remote_media_chunk(
        self, session: AsyncSession, source: ContentSource, offset: int, limit: int, is_temp: bool = True
    ) -> int:
        media_items = await source.list_remote_media(offset, limit)
        for media in media_items:
            asset = await self._upsert_external(session, media.url, is_temp, media_id=media.media_id)
            if asset is None:
                logger.debug(f"Remote media {media.media_id} has an unrecognized URL: {media.url}")
                continue
            for reference in media.references:
                await self._add_reference(session, asset.id, reference, is_temp)
        return len(media_items)

    # =========================================================================
    # PHASE 5: MENU LINKS
    # =========================================================================

    async def count_menu_links(self, source: ContentSource) -> int:
        return await source.count_menu_links()

    async def scan_menu_links_chunk(
        self, session: AsyncSession, source: ContentSource, offset: int, limit: int, is_temp: bool = True
    ) -> int:
        links = await source.list_menu_links(offset, limit)
        for link in links:
            reference = FileReference(MENU_LINK_ENTITY_TYPE, link.link_id, link.menu_name, EmbedMethod.MENU_LINK)
            await self._record_reference(session, link.url, reference, is_temp)
        return len(links)

    # =========================================================================
    # ATOMIC SWAP
    # =========================================================================

    async def promote_temporary_items(
        self, session: AsyncSession, validate_archives: bool = True
    ) -> Dict[str, Any]:
        """
        Replace the permanent inventory with the temporary one.

        Deletes permanent usage and orphan reference rows before permanent
        assets, then flips the temporary rows, all in a single transaction.
        Archived files are validated against the new inventory afterwards
        unless disabled.
        """
        deleted_usage = await self.assets.delete_usage_records(session, is_temporary=False)
        await self.assets.delete_orphan_references(session, is_temporary=False)
        deleted_assets = await self.assets.delete_assets(session, is_temporary=False)
        orphan_references = await self.assets.count_orphan_references(session, is_temporary=True)
        promoted = await self.assets.mark_temporary_as_permanent(session)
        await session.commit()

        logger.info(
            f"Promoted {promoted} assets (replaced {deleted_assets} assets, {deleted_usage} usage rows)"
        )

        stats = {
            "promoted_assets": promoted,
            "replaced_assets": deleted_assets,
            "replaced_usage": deleted_usage,
            "orphan_references": orphan_references,
            "archive_problems": [],
        }
        if validate_archives:
            stats["archive_problems"] = await self.validate_archived_files(session)
        return stats

    async def validate_archived_files(self, session: AsyncSession) -> List[Dict[str, Any]]:
        problems = await self.archives.validate_archived_files(session)
        for problem in problems:
            logger.warning(
                f"Archived file problem: {problem['file_name']} "
                f"(archive {problem['id']}, status {problem['status']}): {', '.join(problem['warnings'])}"
            )
        return problems

    async def clear_temporary_items(self, session: AsyncSession) -> Dict[str, int]:
        """Discard a failed scan: temporary usage and orphan rows first, then temporary assets."""
        deleted_usage = await self.assets.delete_usage_records(session, is_temporary=True)
        deleted_orphans = await self.assets.delete_orphan_references(session, is_temporary=True)
        deleted_assets = await self.assets.delete_assets(session, is_temporary=True)
        await session.commit()
        if deleted_assets or deleted_usage:
            logger.info(f"Cleared {deleted_assets} temporary assets and {deleted_usage} temporary usage rows")
        return {"assets": deleted_assets, "usage": deleted_usage, "orphan_references": deleted_orphans}

    async def clear_usage_records(self, session: AsyncSession) -> int:
        """Delete every usage row and orphan reference (permanent and temporary)."""
        deleted = await self.assets.delete_usage_records(session)
        await self.assets.delete_orphan_references(session)
        await session.commit()
        logger.info(f"Cleared {deleted} usage records")
        return deleted

    # =========================================================================
    # DRIVER
    # =========================================================================

    async def run_full_scan(
        self,
        session: AsyncSession,
        source: ContentSource,
        chunk_size: Optional[int] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> Dict[str, Any]:
        """
        Run every phase chunk by chunk, then promote.

        Leftover temporary rows from an interrupted run are discarded first.
        Any failure discards this run's temporary rows and raises ScanError;
        the previous inventory remains in place.
        """
        chunk_size = chunk_size or settings.scan_chunk_size
        await self.clear_temporary_items(session)

        phase: Optional[ScanPhase] = None
        processed: Dict[str, int] = {}
        try:
            for phase in PHASE_ORDER:
                total = await self.count_phase(source, phase)
                offset = 0
                handled = 0
                while offset < total:
                    count = await self.scan_chunk(session, source, phase, offset, chunk_size)
                    await session.commit()
                    handled += count
                    offset += chunk_size
                    if progress is not None:
                        await _maybe_await(progress(ScanProgress(phase, min(offset, total), total)))
                    if count == 0:
                        break
                processed[phase.value] = handled
                logger.info(f"Scan phase {phase.value} complete ({handled} items)")

            stats = await self.promote_temporary_items(session, validate_archives=False)
        except Exception as e:
            phase_name = phase.value if phase else "startup"
            logger.error(f"Inventory scan failed during {phase_name}: {e}", exc_info=True)
            await session.rollback()
            await self.clear_temporary_items(session)
            raise ScanError(f"Inventory scan failed during {phase_name}: {e}", phase=phase) from e

        stats["processed"] = processed
        stats["archive_problems"] = await self.validate_archived_files(session)
        return stats


async def _maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value


# Global scanner service instance
scanner_service = ScannerService()
