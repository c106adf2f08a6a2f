# digital_asset_inventory/services/archive_service.py
"""
Archive lifecycle service.

Governs the archive state machine for documents and videos kept under the
accessibility exemption:

    queued -> archived_public <-> archived_admin
    archived_* -> archived_deleted          (unarchive, delete file, General integrity failure)
    archived_* -> exemption_void            (Legacy integrity failure, automatic)
    exemption_void -> archived_deleted      (corrective unarchive)
    queued -> removed                       (remove from queue)

Classification:
    An archive executed before the compliance deadline, for a file/URL with no
    voided exemption on record, is a Legacy Archive (flag_late_archive=False).
    Anything else is a General Archive. Classification is computed once, at
    execution, against the ArchiveConfig the service was built with.

Error model:
    - Wrong state for an operation raises InvalidTransitionError
    - Execution gate failures are returned in ArchiveExecutionResult.issues
    - Integrity failures found by reconcile_status drive status changes and
      audit notes, they are not raised

Usage:
    from digital_asset_inventory.services.archive_service import archive_service

    record = await archive_service.mark_for_archive(session, asset, "reference")
    result = await archive_service.execute_archive(session, record, "public")
    if not result.success:
        print(result.issues)
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union
from urllib.parse import urlsplit

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import ArchiveConfig, settings, to_naive_utc
from ..database.models import (
    MANUAL_ASSET_TYPES,
    ArchiveReason,
    ArchiveRecord,
    ArchiveStatus,
    ArchiveVisibility,
    Asset,
    utcnow,
)
from .archive_record_service import ArchiveRecordService, archive_record_service
from .asset_service import AssetService, asset_service
from .checksum_service import ChecksumService, IntegrityCheck, checksum_service
from .file_path_resolver import FilePathResolver, file_path_resolver

logger = logging.getLogger("dai.archive")

ARCHIVABLE_CATEGORIES = ("Documents", "Videos")

# Asset types whose links may be routed to the archive detail page
REDIRECT_ELIGIBLE_ASSET_TYPES = (
    "pdf", "word", "excel", "powerpoint", "text", "csv",
    "mp4", "webm", "mov", "avi",
    "google_doc", "google_sheet", "google_slide", "youtube", "vimeo",
    "page", "external",
)

MIN_REASON_OTHER_LENGTH = 10
MIN_PUBLIC_DESCRIPTION_LENGTH = 20
SYSTEM_AUTHOR = "system"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class ArchiveError(Exception):
    """Base class for archive lifecycle errors."""


class InvalidTransitionError(ArchiveError):
    """An operation was attempted from a status that does not allow it."""

    def __init__(self, status: str, operation: str):
        self.status = status
        self.operation = operation
        try:
            label = ArchiveStatus(status).label
        except ValueError:
            label = status
        super().__init__(f"Cannot {operation} an archive record with status '{label}'.")


class ArchiveNotAllowedError(ArchiveError):
    """The asset's category is not eligible for archiving."""


class ActiveArchiveExistsError(ArchiveError):
    """A queued or archived record already exists for the asset/URL."""


class UsagePolicyBlockedError(ArchiveError):
    """Making an in-use archive public is blocked by the usage policy."""

    def __init__(self, usage_count: int, message: str):
        self.usage_count = usage_count
        super().__init__(message)


class ArchiveValidationError(ArchiveError, ValueError):
    """Invalid reason, description or manual entry field."""


@dataclass
class ArchiveExecutionResult:
    """Outcome of execute_archive."""
    record: ArchiveRecord
    success: bool
    issues: Dict[str, Any] = field(default_factory=dict)
    checksum_pending: bool = False

    @property
    def usage_blocked(self) -> Optional[Dict[str, Any]]:
        return self.issues.get("usage_policy_blocked")


def _enqueue_checksum(archive_id: int) -> None:
    from ..tasks import compute_archive_checksum_task

    compute_archive_checksum_task.delay(archive_id)


class ArchiveService:
    """
    Archive lifecycle engine.

    Args:
        config: Archive policy (feature flags, compliance deadline); defaults to settings
        assets: Asset/usage repository
        records: Archive record repository
        checksums: Checksum utility
        resolver: File path resolver
        checksum_queue: Callable receiving an archive id whose checksum must be
            computed out of band (large files)
    """

    def __init__(
        self,
        config: Optional[ArchiveConfig] = None,
        assets: Optional[AssetService] = None,
        records: Optional[ArchiveRecordService] = None,
        checksums: Optional[ChecksumService] = None,
        resolver: Optional[FilePathResolver] = None,
        checksum_queue: Optional[Callable[[int], None]] = None,
    ):
        self.config = config or settings.archive_config()
        self.assets = assets or asset_service
        self.records = records or archive_record_service
        self.checksums = checksums or checksum_service
        self.resolver = resolver or file_path_resolver
        self.checksum_queue = checksum_queue or _enqueue_checksum

    # =========================================================================
    # POLICY HELPERS
    # =========================================================================

    def can_archive(self, asset: Asset) -> bool:
        """Only documents and videos are eligible for the archive."""
        return asset.category in ARCHIVABLE_CATEGORIES

    def is_archive_in_use_allowed(self) -> bool:
        return self.config.allow_archive_in_use

    def is_link_routing_enabled(self) -> bool:
        return self.config.archive_feature_enabled or self.config.allow_archive_in_use

    def is_redirect_eligible_asset_type(self, asset_type: str) -> bool:
        return asset_type in REDIRECT_ELIGIBLE_ASSET_TYPES

    def should_show_archived_label(self) -> bool:
        return bool(self.config.show_archived_label)

    def get_archived_label(self) -> str:
        return self.config.archived_label_text or "Archived"

    def get_compliance_deadline(self) -> datetime:
        return self.config.compliance_deadline

    def get_compliance_deadline_formatted(self) -> str:
        deadline = self.config.compliance_deadline
        return f"{deadline.strftime('%B')} {deadline.day}, {deadline.year}"

    def is_after_compliance_deadline(self, now: Optional[datetime] = None) -> bool:
        now = to_naive_utc(now) if now else utcnow()
        return now >= self.config.compliance_deadline

    def is_legacy_classification(self, classification_date: datetime, prior_void: bool) -> bool:
        """Legacy when executed strictly before the deadline with no voided exemption."""
        return classification_date < self.config.compliance_deadline and not prior_void

    @staticmethod
    def normalize_url(url: str) -> str:
        """
        Canonical form of an absolute URL for matching.

        Lowercases scheme and host, drops default ports and the fragment,
        strips a trailing slash (the root path is kept). Scheme-relative URLs
        default to https; relative paths are returned unchanged.
        """
        url = (url or "").strip()
        if url.startswith("//"):
            url = "https:" + url

        parts = urlsplit(url)
        if not parts.scheme or not parts.netloc:
            return url

        scheme = parts.scheme.lower()
        netloc = (parts.hostname or "").lower()
        port = parts.port
        if port and not ((scheme == "https" and port == 443) or (scheme == "http" and port == 80)):
            netloc = f"{netloc}:{port}"

        path = parts.path or "/"
        if len(path) > 1:
            path = path.rstrip("/") or "/"

        normalized = f"{scheme}://{netloc}{path}"
        if parts.query:
            normalized += f"?{parts.query}"
        return normalized

    async def get_usage_count(self, session: AsyncSession, record: ArchiveRecord) -> int:
        return await self.assets.get_usage_count(session, record.original_fid, record.original_path)

    async def is_visibility_toggle_blocked(
        self, session: AsyncSession, record: ArchiveRecord
    ) -> Optional[Dict[str, Any]]:
        """
        Whether making an admin-only archive public is blocked by usage.

        Returns None when allowed, otherwise {"usage_count": n, "reason": str}.
        """
        if record.status != ArchiveStatus.ARCHIVED_ADMIN.value:
            return None
        return await self.is_re_archive_blocked(session, record)

    async def is_re_archive_blocked(
        self, session: AsyncSession, record: ArchiveRecord
    ) -> Optional[Dict[str, Any]]:
        """Like is_visibility_toggle_blocked, without the status requirement."""
        if record.is_manual_entry() or self.config.allow_archive_in_use:
            return None
        usage_count = await self.get_usage_count(session, record)
        if usage_count <= 0:
            return None
        return {
            "usage_count": usage_count,
            "reason": (
                f"This asset is still referenced in {usage_count} location(s). "
                "Remove the references or enable archiving of in-use assets first."
            ),
        }

    # =========================================================================
    # QUEUE
    # =========================================================================

    async def mark_for_archive(
        self,
        session: AsyncSession,
        asset: Asset,
        reason: Union[ArchiveReason, str],
        reason_other: Optional[str] = None,
        public_description: Optional[str] = None,
        internal_notes: Optional[str] = None,
        archived_by: Optional[str] = None,
    ) -> ArchiveRecord:
        """
        Queue an asset for archiving.

        Raises:
            ArchiveNotAllowedError: If the asset is not a document or video
            ActiveArchiveExistsError: If the asset already has a queued/archived record
            ArchiveValidationError: If the reason is invalid
        """
        if not self.can_archive(asset):
            raise ArchiveNotAllowedError(
                f"Assets in category '{asset.category}' cannot be archived. "
                "Only Documents and Videos are eligible."
            )

        reason = self._coerce_reason(reason)

        existing = await self.records.get_active_archive_record(
            session, managed_file_id=asset.managed_file_id, file_path=asset.file_path
        )
        if existing is not None:
            raise ActiveArchiveExistsError(
                f"This asset already has an active archive record (status: {existing.status_label}). "
                "You must unarchive it first before archiving again."
            )

        record = ArchiveRecord(
            status=ArchiveStatus.QUEUED.value,
            original_fid=asset.managed_file_id,
            original_path=asset.file_path,
            archive_path=self.resolver.stream_uri_to_url_path(asset.file_path) or asset.file_path,
            file_name=asset.file_name,
            asset_type=asset.asset_type,
            mime_type=asset.mime_type,
            file_size=asset.file_size,
            is_private=bool(asset.is_private),
            archive_reason=reason.value,
            archive_reason_other=reason_other if reason == ArchiveReason.OTHER else None,
            public_description=public_description,
            internal_notes=internal_notes,
            archived_by=archived_by,
        )
        record = await self.records.save(session, record)
        logger.info(f"Queued {asset.file_name} for archive (archive id {record.id})")
        return record

    async def remove_from_queue(self, session: AsyncSession, record: ArchiveRecord) -> None:
        """Hard-delete a queued record."""
        if not record.can_remove_from_queue():
            raise InvalidTransitionError(record.status, "remove from queue")
        archive_id, file_name = record.id, record.file_name
        await self.records.hard_delete(session, record)
        logger.info(f"Removed {file_name} from the archive queue (archive id {archive_id})")

    # =========================================================================
    # EXECUTION
    # =========================================================================

    async def validate_execution_gates(self, session: AsyncSession, record: ArchiveRecord) -> Dict[str, Any]:
        """
        Check whether a queued record can be archived now.

        Returns:
            Dict of blocking issues, empty when execution may proceed:
                {"file_missing": str,
                 "usage_policy_blocked": {"usage_count": int, "message": str}}
        """
        issues: Dict[str, Any] = {}

        if not record.is_external():
            path = await self.resolver.resolve_record_path(session, record)
            if path is None:
                issues["file_missing"] = f"Cannot resolve a file path for {record.original_path}."
            elif not path.is_file():
                issues["file_missing"] = f"Source file does not exist at: {record.original_path}"

        usage_count = await self.get_usage_count(session, record)
        if usage_count > 0 and not self.config.allow_archive_in_use:
            issues["usage_policy_blocked"] = {
                "usage_count": usage_count,
                "message": (
                    f"This asset is used in {usage_count} location(s). Remove the references, "
                    "enable archiving of in-use assets, or rescan after editing content."
                ),
            }

        return issues

    async def execute_archive(
        self,
        session: AsyncSession,
        record: ArchiveRecord,
        visibility: Union[ArchiveVisibility, str],
        archived_by: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ArchiveExecutionResult:
        """
        Execute a queued archive.

        Gate failures are persisted as warning flags on the queued record and
        returned in the result. On success the checksum and classification
        date are stored (both immutable from then on).

        Raises:
            InvalidTransitionError: If the record is not queued
            ArchiveValidationError: If visibility is not public/admin
            ChecksumError: If the file cannot be read (nothing is modified)
        """
        if not record.can_execute_archive():
            raise InvalidTransitionError(record.status, "execute archive for")

        try:
            visibility = ArchiveVisibility(visibility)
        except ValueError:
            raise ArchiveValidationError(f"Invalid visibility '{visibility}'. Use 'public' or 'admin'.")

        if record.is_blocked():
            # Re-run the gates from a clean queued state
            record.flag_usage = False
            record.flag_missing = False

        issues = await self.validate_execution_gates(session, record)
        if issues:
            record.flag_missing = "file_missing" in issues
            record.flag_usage = "usage_policy_blocked" in issues
            await session.commit()
            logger.info(f"Archive {record.id} blocked: {', '.join(sorted(issues))}")
            return ArchiveExecutionResult(record=record, success=False, issues=issues)

        now = to_naive_utc(now) if now else utcnow()
        usage_count = await self.get_usage_count(session, record)

        checksum = None
        checksum_pending = False
        if not record.is_external():
            path = await self.resolver.resolve_record_path(session, record)
            if path.stat().st_size > self.config.checksum_size_limit:
                checksum_pending = True
            else:
                checksum = await self.checksums.calculate_checksum(path)

        prior_void = await self.records.has_voided_exemption(
            session,
            managed_file_id=record.original_fid,
            file_path=record.original_path,
            exclude_id=record.id,
        )
        is_legacy = self.is_legacy_classification(now, prior_void)

        record.clear_warning_flags()
        if checksum is not None:
            record.file_checksum = checksum
        record.archive_classification_date = now
        record.status = visibility.status.value
        record.flag_usage = usage_count > 0
        record.archived_while_in_use = usage_count > 0
        record.usage_count_at_archive = usage_count
        record.flag_late_archive = not is_legacy
        record.flag_prior_void = prior_void
        if archived_by:
            record.archived_by = archived_by
        await session.commit()

        if checksum_pending:
            self.checksum_queue(record.id)
            logger.info(f"Archive {record.id} exceeds checksum size limit; checksum queued")

        logger.info(
            f"Archived {record.file_name} as {record.status} "
            f"({'Legacy' if is_legacy else 'General'} Archive, usage={usage_count})"
        )
        return ArchiveExecutionResult(record=record, success=True, checksum_pending=checksum_pending)

    # =========================================================================
    # ARCHIVED RECORD OPERATIONS
    # =========================================================================

    async def toggle_visibility(self, session: AsyncSession, record: ArchiveRecord) -> ArchiveRecord:
        """
        Flip an archived record between public and admin-only.

        Raises:
            InvalidTransitionError: If the record is not actively archived
            UsagePolicyBlockedError: If going public while in use is not allowed
        """
        if not record.can_toggle_visibility():
            raise InvalidTransitionError(record.status, "toggle visibility of")

        if record.status == ArchiveStatus.ARCHIVED_ADMIN.value:
            blocked = await self.is_visibility_toggle_blocked(session, record)
            if blocked:
                raise UsagePolicyBlockedError(blocked["usage_count"], blocked["reason"])
            record.status = ArchiveStatus.ARCHIVED_PUBLIC.value
        else:
            record.status = ArchiveStatus.ARCHIVED_ADMIN.value

        await session.commit()
        logger.info(f"Archive {record.id} visibility set to {record.status}")
        return record

    async def unarchive(
        self, session: AsyncSession, record: ArchiveRecord, deleted_by: Optional[str] = None
    ) -> ArchiveRecord:
        """
        Move an archived (or voided) record to archived_deleted.

        Never blocked by usage policy.
        """
        if not record.can_unarchive():
            raise InvalidTransitionError(record.status, "unarchive")

        previous_status = record.status
        record.status = ArchiveStatus.ARCHIVED_DELETED.value
        record.clear_warning_flags()
        record.deleted_date = utcnow()
        record.deleted_by = deleted_by
        if previous_status == ArchiveStatus.EXEMPTION_VOID.value:
            await self.records.add_note(
                session,
                record,
                "Record unarchived from Exemption Void. The voided exemption remains part of the audit trail.",
                deleted_by or SYSTEM_AUTHOR,
            )
        await session.commit()
        logger.info(f"Unarchived archive {record.id} (was {previous_status})")
        return record

    async def delete_file(
        self, session: AsyncSession, record: ArchiveRecord, deleted_by: Optional[str] = None
    ) -> ArchiveRecord:
        """
        Delete the physical file behind an archived record.

        The permanent inventory rows for the file are removed (references first) and
        the record moves to archived_deleted; the record itself is kept.

        Raises:
            InvalidTransitionError: If the record is not an archived file
            ArchiveError: If the file exists but cannot be deleted
        """
        if not record.can_delete_file():
            raise InvalidTransitionError(record.status, "delete the file of")

        path = await self.resolver.resolve_record_path(session, record)
        asset = await self.assets.find_for_archive(session, record.original_fid, record.original_path)

        if path is not None and path.is_file():
            try:
                path.unlink()
            except OSError as e:
                raise ArchiveError(f"Failed to delete {path}: {e}") from e
            logger.info(f"Deleted archived file {path}")
        else:
            logger.warning(f"Archived file for archive {record.id} already absent: {record.original_path}")

        if asset is not None:
            for usage in await self.assets.list_usage(session, asset.id):
                await session.delete(usage)
            for reference in await self.assets.list_orphan_references(session, asset.id):
                await session.delete(reference)
            await session.flush()
            await session.delete(asset)

        record.status = ArchiveStatus.ARCHIVED_DELETED.value
        record.deleted_date = utcnow()
        record.deleted_by = deleted_by
        await session.commit()
        return record

    # =========================================================================
    # RECONCILIATION
    # =========================================================================

    async def reconcile_status(self, session: AsyncSession, record: ArchiveRecord) -> bool:
        """
        Recompute warning flags and enforce integrity for one record.

        Idempotent. Returns True if the record changed (and was saved).

        Queued records:
            A missing file removes the queue entry; otherwise flag_usage tracks usage.
        Archived records:
            flag_usage tracks usage (advisory), flag_missing tracks file presence,
            and a checksum mismatch voids a Legacy Archive's exemption
            (exemption_void) or deletes a General Archive (archived_deleted).
        Remote URL archives (YouTube, cloud documents) only track usage.
        Manual entries and terminal records are left untouched.
        """
        if record.is_queued():
            return await self._reconcile_queued(session, record)

        if record.is_manual_entry() or not record.is_active_archived():
            return False

        before = self._snapshot(record)

        usage_count = await self.get_usage_count(session, record)
        if record.is_external():
            check = IntegrityCheck()
        else:
            path = await self.resolver.resolve_record_path(session, record)
            check = await self.checksums.verify_integrity(path, record.file_checksum)

        record.clear_warning_flags()
        record.flag_usage = usage_count > 0
        record.flag_missing = check.missing

        if check.modified:
            record.flag_integrity = True
            if record.is_legacy_archive():
                record.status = ArchiveStatus.EXEMPTION_VOID.value
                note = (
                    "Integrity violation: file content changed after Legacy Archive classification. "
                    "The accessibility exemption is void."
                )
            else:
                record.status = ArchiveStatus.ARCHIVED_DELETED.value
                record.deleted_date = utcnow()
                record.deleted_by = SYSTEM_AUTHOR
                note = "Integrity violation: file content changed after archiving. General Archive removed."
            logger.warning(f"Archive {record.id} ({record.file_name}): {note}")

        if self._snapshot(record) == before:
            return False

        if check.modified:
            await self.records.add_note(session, record, note, SYSTEM_AUTHOR)
        await session.commit()
        return True

    async def _reconcile_queued(self, session: AsyncSession, record: ArchiveRecord) -> bool:
        if not record.is_external():
            path = await self.resolver.resolve_record_path(session, record)
            if path is None or not path.is_file():
                logger.warning(
                    f"Queued archive {record.id} removed: source file missing ({record.original_path})"
                )
                await self.records.hard_delete(session, record)
                return True

        flag_usage = await self.get_usage_count(session, record) > 0
        if bool(record.flag_usage) == flag_usage:
            return False
        record.flag_usage = flag_usage
        await session.commit()
        return True

    @staticmethod
    def _snapshot(record: ArchiveRecord) -> tuple:
        return (
            record.status,
            bool(record.flag_usage),
            bool(record.flag_missing),
            bool(record.flag_integrity),
            bool(record.flag_modified),
        )

    async def validate_archived_files(self, session: AsyncSession) -> List[Dict[str, Any]]:
        """
        Reconcile every active archive and report those with problems.

        Returns:
            List of {"id", "file_name", "status", "warnings"} for records that
            carry warning flags or left the active states after reconciliation.
        """
        problems = []
        for record in await self.records.get_archived_assets(session):
            await self.reconcile_status(session, record)
            if record.has_warning_flags() or not record.is_active_archived():
                problems.append({
                    "id": record.id,
                    "file_name": record.file_name,
                    "status": record.status,
                    "warnings": record.warning_labels(),
                })
        return problems

    async def reconcile_all(self, session: AsyncSession) -> Dict[str, int]:
        """Reconcile queued and archived records; returns counts."""
        stats = {"checked": 0, "changed": 0}
        records = await self.records.get_queued(session) + await self.records.get_archived_assets(session)
        for record in records:
            stats["checked"] += 1
            if await self.reconcile_status(session, record):
                stats["changed"] += 1
        logger.info(f"Archive reconciliation complete: {stats}")
        return stats

    # =========================================================================
    # DEFERRED CHECKSUMS
    # =========================================================================

    async def compute_pending_checksum(self, session: AsyncSession, record: ArchiveRecord) -> bool:
        """
        Fill in the checksum of an archive executed for a large file.

        Only active archived records are completed; records that were
        unarchived or deleted meanwhile keep a null checksum.
        """
        if not record.is_checksum_pending():
            return False

        path = await self.resolver.resolve_record_path(session, record)
        if path is None or not path.is_file():
            if not record.flag_missing:
                record.flag_missing = True
                await session.commit()
            logger.warning(f"Cannot compute checksum for archive {record.id}: file missing")
            return False

        record.file_checksum = await self.checksums.calculate_checksum(path)
        await session.commit()
        logger.info(f"Computed deferred checksum for archive {record.id}")
        return True

    async def process_pending_checksums(self, session: AsyncSession) -> Dict[str, int]:
        stats = {"pending": 0, "completed": 0}
        for record in await self.records.get_archives_with_pending_checksums(session):
            stats["pending"] += 1
            if await self.compute_pending_checksum(session, record):
                stats["completed"] += 1
        return stats

    # =========================================================================
    # MANUAL ENTRIES
    # =========================================================================

    async def create_manual_entry(
        self,
        session: AsyncSession,
        title: str,
        url: str,
        asset_type: str,
        reason: Union[ArchiveReason, str],
        reason_other: Optional[str] = None,
        public_description: Optional[str] = None,
        internal_notes: Optional[str] = None,
        visibility: Union[ArchiveVisibility, str] = ArchiveVisibility.PUBLIC,
        archived_by: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ArchiveRecord:
        """
        Register a web page or external resource directly in the archive.

        Manual entries skip the queue: they are created archived, have no
        file and no checksum, and are classified like any other archive.
        """
        if asset_type not in MANUAL_ASSET_TYPES:
            raise ArchiveValidationError(
                f"Invalid manual entry type '{asset_type}'. Use one of: {', '.join(MANUAL_ASSET_TYPES)}."
            )
        title = (title or "").strip()
        if not title:
            raise ArchiveValidationError("Title is required.")
        if not (url or "").strip():
            raise ArchiveValidationError("URL is required.")
        try:
            visibility = ArchiveVisibility(visibility)
        except ValueError:
            raise ArchiveValidationError(f"Invalid visibility '{visibility}'. Use 'public' or 'admin'.")

        reason = self._validate_manual_fields(reason, reason_other, public_description)
        url = self.normalize_url(url)

        existing = await self.records.get_active_archive_record(session, file_path=url)
        if existing is not None:
            raise ActiveArchiveExistsError(
                f"This URL already has an active archive record (status: {existing.status_label})."
            )

        now = to_naive_utc(now) if now else utcnow()
        prior_void = await self.records.has_voided_exemption(session, file_path=url)
        is_legacy = self.is_legacy_classification(now, prior_void)

        record = ArchiveRecord(
            status=visibility.status.value,
            original_fid=None,
            original_path=url,
            archive_path=url,
            file_name=title,
            asset_type=asset_type,
            archive_reason=reason.value,
            archive_reason_other=(reason_other or "").strip() if reason == ArchiveReason.OTHER else None,
            public_description=public_description,
            internal_notes=internal_notes,
            archive_classification_date=now,
            flag_late_archive=not is_legacy,
            flag_prior_void=prior_void,
            archived_by=archived_by,
        )
        record = await self.records.save(session, record)
        logger.info(f"Added manual {asset_type} entry '{title}' to the archive ({record.status})")
        return record

    async def update_manual_entry(
        self,
        session: AsyncSession,
        record: ArchiveRecord,
        title: Optional[str] = None,
        reason: Optional[Union[ArchiveReason, str]] = None,
        reason_other: Optional[str] = None,
        public_description: Optional[str] = None,
        internal_notes: Optional[str] = None,
    ) -> ArchiveRecord:
        """Edit title/reason/description/notes of a manual entry. URL and type stay fixed."""
        if not record.can_edit():
            raise InvalidTransitionError(record.status, "edit")

        new_title = (title if title is not None else record.file_name).strip()
        if not new_title:
            raise ArchiveValidationError("Title is required.")
        new_reason = reason if reason is not None else record.archive_reason
        new_reason_other = reason_other if reason_other is not None else record.archive_reason_other
        new_description = public_description if public_description is not None else record.public_description

        new_reason = self._validate_manual_fields(new_reason, new_reason_other, new_description)

        record.file_name = new_title
        record.archive_reason = new_reason.value
        record.archive_reason_other = (
            (new_reason_other or "").strip() if new_reason == ArchiveReason.OTHER else None
        )
        record.public_description = new_description
        if internal_notes is not None:
            record.internal_notes = internal_notes
        await session.commit()
        logger.info(f"Updated manual archive entry {record.id}")
        return record

    # =========================================================================
    # VALIDATION
    # =========================================================================

    @staticmethod
    def _coerce_reason(reason: Union[ArchiveReason, str]) -> ArchiveReason:
        try:
            return ArchiveReason(reason)
        except ValueError:
            valid = ", ".join(r.value for r in ArchiveReason)
            raise ArchiveValidationError(f"Invalid archive reason '{reason}'. Use one of: {valid}.")

    def _validate_manual_fields(
        self,
        reason: Union[ArchiveReason, str],
        reason_other: Optional[str],
        public_description: Optional[str],
    ) -> ArchiveReason:
        reason = self._coerce_reason(reason)
        if reason == ArchiveReason.OTHER and len((reason_other or "").strip()) < MIN_REASON_OTHER_LENGTH:
            raise ArchiveValidationError(
                f"Please describe the reason in at least {MIN_REASON_OTHER_LENGTH} characters."
            )
        if len((public_description or "").strip()) < MIN_PUBLIC_DESCRIPTION_LENGTH:
            raise ArchiveValidationError(
                f"Public description must be at least {MIN_PUBLIC_DESCRIPTION_LENGTH} characters."
            )
        return reason


# Global archive service instance
archive_service = ArchiveService()
