# digital_asset_inventory/services/archive_record_service.py
"""
Archive record repository.

CRUD and queries over ``archive_records`` and their append-only
``archive_notes``. State transitions live in ArchiveService; this service only
persists what it is given. Checksum/classification immutability is enforced
on the model itself, so every write path here inherits it.

Usage:
    from digital_asset_inventory.services.archive_record_service import archive_record_service

    active = await archive_record_service.get_active_archive_record(session, managed_file_id=7)
    await archive_record_service.add_note(session, record, "Verified with records office", "jdoe")
"""

import logging
from typing import List, Optional

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.models import (
    ACTIVE_ARCHIVED_STATUSES,
    MANUAL_ASSET_TYPES,
    NON_TERMINAL_STATUSES,
    REMOTE_URL_PREFIXES,
    ArchiveNote,
    ArchiveRecord,
    ArchiveStatus,
)

logger = logging.getLogger("dai.archive_records")

MAX_NOTE_LENGTH = 500


class ArchiveNoteError(ValueError):
    """Raised for an empty or oversized archive note."""


def _file_identity_clause(managed_file_id: Optional[int], file_path: Optional[str]):
    """Match a record by managed file id when present, else by original path."""
    if managed_file_id is not None:
        return ArchiveRecord.original_fid == managed_file_id
    return ArchiveRecord.original_path == file_path


class ArchiveRecordService:
    """Persistence for archive records and notes."""

    # =========================================================================
    # CRUD
    # =========================================================================

    async def get_by_id(self, session: AsyncSession, archive_id: int) -> Optional[ArchiveRecord]:
        return await session.get(ArchiveRecord, archive_id)

    async def get_by_uuid(self, session: AsyncSession, archive_uuid: str) -> Optional[ArchiveRecord]:
        result = await session.execute(
            select(ArchiveRecord).where(ArchiveRecord.archive_uuid == archive_uuid)
        )
        return result.scalar_one_or_none()

    async def save(self, session: AsyncSession, record: ArchiveRecord) -> ArchiveRecord:
        session.add(record)
        await session.commit()
        await session.refresh(record)
        return record

    async def hard_delete(self, session: AsyncSession, record: ArchiveRecord) -> None:
        """
        Physically delete a record and its notes.

        Only used for queued records, which have no audit trail yet; notes of
        archived records are never deleted.
        """
        await session.execute(delete(ArchiveNote).where(ArchiveNote.archive_id == record.id))
        await session.delete(record)
        await session.commit()

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    async def get_active_archive_record(
        self,
        session: AsyncSession,
        managed_file_id: Optional[int] = None,
        file_path: Optional[str] = None,
    ) -> Optional[ArchiveRecord]:
        """Non-terminal record (queued or archived) for a file or URL."""
        if managed_file_id is None and not file_path:
            return None
        result = await session.execute(
            select(ArchiveRecord)
            .where(
                _file_identity_clause(managed_file_id, file_path),
                ArchiveRecord.status.in_(NON_TERMINAL_STATUSES),
            )
            .order_by(ArchiveRecord.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_active_archived_for(
        self,
        session: AsyncSession,
        managed_file_id: Optional[int] = None,
        file_path: Optional[str] = None,
    ) -> Optional[ArchiveRecord]:
        """Record in archived_public/archived_admin for a file or URL."""
        if managed_file_id is None and not file_path:
            return None
        result = await session.execute(
            select(ArchiveRecord)
            .where(
                _file_identity_clause(managed_file_id, file_path),
                ArchiveRecord.status.in_(ACTIVE_ARCHIVED_STATUSES),
            )
            .order_by(ArchiveRecord.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def has_voided_exemption(
        self,
        session: AsyncSession,
        managed_file_id: Optional[int] = None,
        file_path: Optional[str] = None,
        exclude_id: Optional[int] = None,
    ) -> bool:
        """Whether any record for this file/URL ended in exemption_void."""
        if managed_file_id is None and not file_path:
            return False
        query = select(func.count(ArchiveRecord.id)).where(
            _file_identity_clause(managed_file_id, file_path),
            ArchiveRecord.status == ArchiveStatus.EXEMPTION_VOID.value,
        )
        if exclude_id is not None:
            query = query.where(ArchiveRecord.id != exclude_id)
        result = await session.execute(query)
        return (result.scalar() or 0) > 0

    # =========================================================================
    # LISTINGS
    # =========================================================================

    async def _list(self, session: AsyncSession, *criteria) -> List[ArchiveRecord]:
        result = await session.execute(
            select(ArchiveRecord).where(*criteria).order_by(ArchiveRecord.id)
        )
        return list(result.scalars().all())

    async def get_pending_archives(self, session: AsyncSession) -> List[ArchiveRecord]:
        """Queued records without gate flags."""
        return await self._list(
            session,
            ArchiveRecord.status == ArchiveStatus.QUEUED.value,
            ArchiveRecord.flag_usage.is_(False),
            ArchiveRecord.flag_missing.is_(False),
        )

    async def get_blocked_archives(self, session: AsyncSession) -> List[ArchiveRecord]:
        """Queued records that a previous execution attempt flagged."""
        return await self._list(
            session,
            ArchiveRecord.status == ArchiveStatus.QUEUED.value,
            or_(ArchiveRecord.flag_usage.is_(True), ArchiveRecord.flag_missing.is_(True)),
        )

    async def get_queued(self, session: AsyncSession) -> List[ArchiveRecord]:
        return await self._list(session, ArchiveRecord.status == ArchiveStatus.QUEUED.value)

    async def get_archived_assets(self, session: AsyncSession) -> List[ArchiveRecord]:
        return await self._list(session, ArchiveRecord.status.in_(ACTIVE_ARCHIVED_STATUSES))

    async def get_archived_with_problems(self, session: AsyncSession) -> List[ArchiveRecord]:
        return await self._list(
            session,
            ArchiveRecord.status.in_(ACTIVE_ARCHIVED_STATUSES),
            or_(
                ArchiveRecord.flag_usage.is_(True),
                ArchiveRecord.flag_missing.is_(True),
                ArchiveRecord.flag_integrity.is_(True),
                ArchiveRecord.flag_modified.is_(True),
            ),
        )

    async def get_archives_with_pending_checksums(self, session: AsyncSession) -> List[ArchiveRecord]:
        """Active file-based archives whose checksum is still to be computed."""
        external = and_(
            ArchiveRecord.original_fid.is_(None),
            or_(
                ArchiveRecord.asset_type.in_(MANUAL_ASSET_TYPES),
                *[ArchiveRecord.original_path.ilike(f"{prefix}%") for prefix in REMOTE_URL_PREFIXES],
            ),
        )
        return await self._list(
            session,
            ArchiveRecord.status.in_(ACTIVE_ARCHIVED_STATUSES),
            ArchiveRecord.file_checksum.is_(None),
            ~external,
        )

    async def count_by_status(self, session: AsyncSession) -> dict:
        result = await session.execute(
            select(ArchiveRecord.status, func.count(ArchiveRecord.id)).group_by(ArchiveRecord.status)
        )
        counts = {status.value: 0 for status in ArchiveStatus}
        for status, count in result.all():
            counts[status] = count
        return counts

    # =========================================================================
    # NOTES
    # =========================================================================

    async def add_note(
        self, session: AsyncSession, record: ArchiveRecord, text: str, author: str = "system"
    ) -> ArchiveNote:
        """
        Append an audit note to a record.

        Raises:
            ArchiveNoteError: If the text is empty or longer than 500 characters
        """
        text = (text or "").strip()
        if not text:
            raise ArchiveNoteError("Note text is required.")
        if len(text) > MAX_NOTE_LENGTH:
            raise ArchiveNoteError(f"Note text cannot exceed {MAX_NOTE_LENGTH} characters.")

        note = ArchiveNote(archive_id=record.id, note_text=text, author=author or "system")
        session.add(note)
        await session.flush()
        return note

    async def get_notes(self, session: AsyncSession, record: ArchiveRecord) -> List[ArchiveNote]:
        """Notes for a record, newest first."""
        result = await session.execute(
            select(ArchiveNote)
            .where(ArchiveNote.archive_id == record.id)
            .order_by(ArchiveNote.created_at.desc(), ArchiveNote.id.desc())
        )
        return list(result.scalars().all())


# Global archive record service instance
archive_record_service = ArchiveRecordService()
