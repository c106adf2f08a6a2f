# digital_asset_inventory/services/archive_link_service.py
"""
Archive link routing.

Answers the link-rewriting question "is there an active archive behind this
file or URL, and where is its detail page?". Links to archived documents and
videos are routed to the archive registry instead of the raw file.

Usage:
    from digital_asset_inventory.services.archive_link_service import archive_link_service

    url = await archive_link_service.get_archive_detail_url(session, url="/sites/default/files/a.pdf")
    if url:
        href = url  # "/archive-registry/42"
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..database.models import ArchiveRecord
from .archive_service import ArchiveService, archive_service

logger = logging.getLogger("dai.archive_links")

ARCHIVE_DETAIL_PATH = "/archive-registry/{archive_id}"


class ArchiveLinkService:
    """Resolves files/URLs to archive detail URLs."""

    def __init__(self, archives: Optional[ArchiveService] = None):
        self.archives = archives or archive_service

    @staticmethod
    def detail_url(record: ArchiveRecord) -> str:
        return ARCHIVE_DETAIL_PATH.format(archive_id=record.id)

    async def find_active_archive(
        self,
        session: AsyncSession,
        managed_file_id: Optional[int] = None,
        url: Optional[str] = None,
    ) -> Optional[ArchiveRecord]:
        """
        Active (public or admin) archive for a managed file id or a URL.

        URLs are tried as given, as a local stream URI (for file links), and
        in normalized form (for manual/external entries).
        """
        records = self.archives.records

        if managed_file_id is not None:
            record = await records.get_active_archived_for(session, managed_file_id=managed_file_id)
            if record is not None:
                return record

        if not url:
            return None

        candidates = [url]
        stream_uri = self.archives.resolver.url_path_to_stream_uri(url)
        if stream_uri:
            candidates.append(stream_uri)
        normalized = self.archives.normalize_url(url)
        if normalized not in candidates:
            candidates.append(normalized)

        for candidate in candidates:
            record = await records.get_active_archived_for(session, file_path=candidate)
            if record is not None:
                return record
        return None

    async def get_archive_detail_url(
        self,
        session: AsyncSession,
        managed_file_id: Optional[int] = None,
        url: Optional[str] = None,
    ) -> Optional[str]:
        """
        Archive detail URL for a file/URL, or None when links are not routed.

        Returns None if link routing is disabled, no active archive exists, or
        the archived asset type is not eligible for redirection.
        """
        if not self.archives.is_link_routing_enabled():
            return None

        record = await self.find_active_archive(session, managed_file_id=managed_file_id, url=url)
        if record is None or not self.archives.is_redirect_eligible_asset_type(record.asset_type):
            return None

        logger.debug(f"Routing {url or managed_file_id} to archive {record.id}")
        return self.detail_url(record)


# Global archive link service instance
archive_link_service = ArchiveLinkService()
