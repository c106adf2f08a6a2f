# digital_asset_inventory/database/models.py
"""
SQLAlchemy ORM models for the digital asset inventory.

Models:
    - Asset: A discovered file or external resource (one permanent row per file/URL)
    - UsageRecord: One place an asset is referenced from content
    - OrphanReference: A reference from an orphaned host entity (not active usage)
    - ArchiveRecord: Archive lifecycle record for a document/video or manual entry
    - ArchiveNote: Append-only audit notes attached to an archive record

Assets, usage records and orphan references carry an ``is_temporary`` staging flag so that a scan
can build a complete new inventory next to the live one and swap it in at the
end. Archive records are never cleaned up by scans.

All timestamps are naive UTC.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    inspect,
)
from sqlalchemy.orm import validates
from sqlalchemy.orm.base import NO_VALUE

from .base import Base


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ImmutableFieldError(Exception):
    """Raised when an archive record field that is fixed at execution time is changed."""


# ============================================================================
# ENUMERATIONS
# ============================================================================

class SourceType(str, enum.Enum):
    """Where an asset was discovered."""
    FILE_MANAGED = "file_managed"
    MEDIA_MANAGED = "media_managed"
    FILESYSTEM_ONLY = "filesystem_only"
    EXTERNAL = "external"


class EmbedMethod(str, enum.Enum):
    """How content references an asset."""
    MEDIA_EMBED = "media_embed"
    FIELD_REFERENCE = "field_reference"
    HTML5_VIDEO = "html5_video"
    HTML5_AUDIO = "html5_audio"
    TEXT_LINK = "text_link"
    INLINE_IMAGE = "inline_image"
    INLINE_IFRAME = "inline_iframe"
    OBJECT_EMBED = "object_embed"
    EMBED_ELEMENT = "embed_element"
    TEXT_URL = "text_url"
    LINK_FIELD = "link_field"
    MENU_LINK = "menu_link"


class OrphanContext(str, enum.Enum):
    """Why a reference comes from a host entity that is no longer attached to content."""
    MISSING_PARENT_ENTITY = "missing_parent_entity"
    DETACHED_COMPONENT = "detached_component"


class ArchiveStatus(str, enum.Enum):
    """Archive lifecycle states."""
    QUEUED = "queued"
    ARCHIVED_PUBLIC = "archived_public"
    ARCHIVED_ADMIN = "archived_admin"
    ARCHIVED_DELETED = "archived_deleted"
    EXEMPTION_VOID = "exemption_void"

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]


_STATUS_LABELS = {
    ArchiveStatus.QUEUED: "Queued",
    ArchiveStatus.ARCHIVED_PUBLIC: "Archived (Public)",
    ArchiveStatus.ARCHIVED_ADMIN: "Archived (Admin-only)",
    ArchiveStatus.ARCHIVED_DELETED: "Archived (Deleted)",
    ArchiveStatus.EXEMPTION_VOID: "Exemption Void",
}

# Status groups (string values, usable both in Python and in SQL IN clauses)
ACTIVE_ARCHIVED_STATUSES = (
    ArchiveStatus.ARCHIVED_PUBLIC.value,
    ArchiveStatus.ARCHIVED_ADMIN.value,
)
TERMINAL_STATUSES = (
    ArchiveStatus.ARCHIVED_DELETED.value,
    ArchiveStatus.EXEMPTION_VOID.value,
)
NON_TERMINAL_STATUSES = (ArchiveStatus.QUEUED.value,) + ACTIVE_ARCHIVED_STATUSES


class ArchiveVisibility(str, enum.Enum):
    """Visibility chosen when an archive is executed."""
    PUBLIC = "public"
    ADMIN = "admin"

    @property
    def status(self) -> ArchiveStatus:
        if self is ArchiveVisibility.PUBLIC:
            return ArchiveStatus.ARCHIVED_PUBLIC
        return ArchiveStatus.ARCHIVED_ADMIN


class ArchiveReason(str, enum.Enum):
    """Why an asset was archived."""
    REFERENCE = "reference"
    RESEARCH = "research"
    RECORDKEEPING = "recordkeeping"
    OTHER = "other"

    @property
    def label(self) -> str:
        return _REASON_LABELS[self]


_REASON_LABELS = {
    ArchiveReason.REFERENCE: "Reference",
    ArchiveReason.RESEARCH: "Research",
    ArchiveReason.RECORDKEEPING: "Recordkeeping",
    ArchiveReason.OTHER: "Other",
}

MANUAL_ASSET_TYPES = ("page", "external")
REMOTE_URL_PREFIXES = ("http://", "https://", "//")

ASSET_TYPE_LABELS = {
    "pdf": "PDF",
    "word": "Word Document",
    "excel": "Excel Spreadsheet",
    "powerpoint": "PowerPoint",
    "page": "Web Page",
    "external": "External Resource",
}


# ============================================================================
# INVENTORY MODELS
# ============================================================================

class Asset(Base):
    """
    Asset model representing one discovered file or external resource.

    Attributes:
        id: Primary key
        file_name: Display file name (basename or URL)
        file_path: URI/URL as discovered (public://, private://, or http(s))
        url_hash: md5 of the normalized path, used to deduplicate within a scan
        asset_type: Granular type (pdf, mp4, youtube, ...)
        category: Documents, Videos, Images, Audio, Other or Unknown
        mime_type: MIME type when known
        source_type: file_managed, media_managed, filesystem_only or external
        managed_file_id: Identifier in the CMS file store (nullable)
        media_id: Media entity referencing the file (nullable)
        file_size: Size in bytes
        is_private: Stored under private://
        is_temporary: Staging flag used during scans

    Lifecycle:
        1. Created by a scan phase with is_temporary=True
        2. Promoted to permanent when the scan completes
        3. Deleted when promoted over or when the scan fails
    """

    __tablename__ = "assets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    file_name = Column(String(500), nullable=False)
    file_path = Column(String(2048), nullable=False)
    url_hash = Column(String(32), nullable=True)
    asset_type = Column(String(64), nullable=False, default="other")
    category = Column(String(64), nullable=False, default="Unknown")
    mime_type = Column(String(255), nullable=True)
    source_type = Column(String(32), nullable=False)  # SourceType value
    managed_file_id = Column(Integer, nullable=True)
    media_id = Column(Integer, nullable=True)
    file_size = Column(Integer, nullable=False, default=0)
    is_private = Column(Boolean, nullable=False, default=False)
    is_temporary = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_assets_managed_file", "managed_file_id", "is_temporary"),
        Index("ix_assets_url_hash", "url_hash", "is_temporary"),
        Index("ix_assets_file_path", "file_path"),
    )

    def __repr__(self) -> str:
        return f"<Asset(id={self.id}, path={self.file_path}, type={self.asset_type}, temp={self.is_temporary})>"


class UsageRecord(Base):
    """
    One reference from content to an asset.

    Usage rows must be deleted before the asset rows they point at; storage
    level foreign key enforcement is not relied on.
    """

    __tablename__ = "usage_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    asset_id = Column(Integer, ForeignKey("assets.id"), nullable=False, index=True)
    entity_type = Column(String(64), nullable=False)
    entity_id = Column(Integer, nullable=False)
    field_name = Column(String(255), nullable=False)
    embed_method = Column(String(32), nullable=False)  # EmbedMethod value
    count = Column(Integer, nullable=False, default=1)
    is_temporary = Column(Boolean, nullable=False, default=True, index=True)

    def __repr__(self) -> str:
        return (
            f"<UsageRecord(asset_id={self.asset_id}, {self.entity_type}:{self.entity_id}."
            f"{self.field_name}, method={self.embed_method})>"
        )


class OrphanReference(Base):
    """
    A reference found on an orphaned host entity (e.g. a component whose parent
    was deleted or that was detached in a later revision).

    Kept apart from usage_records so it never counts as active usage, but staged
    and swapped with the rest of the inventory. Must be deleted before the
    asset it points at.
    """

    __tablename__ = "orphan_references"

    id = Column(Integer, primary_key=True, autoincrement=True)
    asset_id = Column(Integer, ForeignKey("assets.id"), nullable=False, index=True)
    source_entity_type = Column(String(128), nullable=False)
    source_bundle = Column(String(128), nullable=False, default="")
    source_entity_id = Column(Integer, nullable=False)
    field_name = Column(String(255), nullable=False, default="")
    embed_method = Column(String(32), nullable=False)  # EmbedMethod value
    reference_context = Column(String(32), nullable=False)  # OrphanContext value
    detected_on = Column(DateTime, nullable=False, default=utcnow)
    is_temporary = Column(Boolean, nullable=False, default=True, index=True)

    def __repr__(self) -> str:
        return (
            f"<OrphanReference(asset_id={self.asset_id}, {self.source_entity_type}:{self.source_entity_id}, "
            f"context={self.reference_context})>"
        )


# ============================================================================
# ARCHIVE MODELS
# ============================================================================

class ArchiveRecord(Base):
    """
    Archive lifecycle record.

    Status transitions:
        queued -> archived_public <-> archived_admin
        archived_* -> archived_deleted (terminal)
        archived_* -> exemption_void (terminal, automatic on integrity failure)
        exemption_void -> archived_deleted (corrective unarchive)
        queued -> (hard delete)

    ``file_checksum`` and ``archive_classification_date`` are written once when
    the archive is executed. Assigning a different value afterwards raises
    ImmutableFieldError before anything reaches the database.

    Classification:
        flag_late_archive=False means Legacy Archive (eligible for the
        accessibility exemption while unmodified); True means General Archive.
    """

    __tablename__ = "archive_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    archive_uuid = Column(String(36), nullable=False, unique=True, default=lambda: str(uuid.uuid4()))
    status = Column(String(32), nullable=False, default=ArchiveStatus.QUEUED.value, index=True)

    # Source provenance (copied from the asset when queued)
    original_fid = Column(Integer, nullable=True, index=True)
    original_path = Column(String(2048), nullable=False)
    archive_path = Column(String(2048), nullable=True)
    file_name = Column(String(500), nullable=False)
    asset_type = Column(String(64), nullable=False)
    mime_type = Column(String(255), nullable=True)
    file_size = Column(Integer, nullable=True)
    is_private = Column(Boolean, nullable=False, default=False)

    # Reason and descriptions
    archive_reason = Column(String(32), nullable=False)  # ArchiveReason value
    archive_reason_other = Column(Text, nullable=True)
    public_description = Column(Text, nullable=True)
    internal_notes = Column(Text, nullable=True)

    # Set once at execution
    file_checksum = Column(String(64), nullable=True)
    archive_classification_date = Column(DateTime, nullable=True)

    # Warning flags
    flag_usage = Column(Boolean, nullable=False, default=False)
    flag_missing = Column(Boolean, nullable=False, default=False)
    flag_integrity = Column(Boolean, nullable=False, default=False)
    flag_modified = Column(Boolean, nullable=False, default=False)

    # Classification flags
    flag_late_archive = Column(Boolean, nullable=False, default=False)
    flag_prior_void = Column(Boolean, nullable=False, default=False)

    archived_while_in_use = Column(Boolean, nullable=False, default=False)
    usage_count_at_archive = Column(Integer, nullable=False, default=0)

    archived_by = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    deleted_date = Column(DateTime, nullable=True)
    deleted_by = Column(String(255), nullable=True)

    __table_args__ = (
        Index("ix_archive_records_path_status", "original_path", "status"),
    )

    @validates("file_checksum", "archive_classification_date")
    def _validate_immutable(self, key, value):
        state = inspect(self)
        current = state.attrs[key].loaded_value
        if current is NO_VALUE:
            if state.persistent:
                raise ImmutableFieldError(
                    f"Cannot verify {key} before assignment; reload the archive record first."
                )
            current = None
        if current is not None and value != current:
            if key == "file_checksum":
                raise ImmutableFieldError(
                    "File Checksum is immutable. It can only be set during archive execution."
                )
            raise ImmutableFieldError(
                "Archive Classification Date is immutable. It can only be set during archive execution."
            )
        return value

    # -------- Status helpers --------
    @property
    def status_enum(self) -> ArchiveStatus:
        return ArchiveStatus(self.status)

    @property
    def status_label(self) -> str:
        return self.status_enum.label

    def is_queued(self) -> bool:
        return self.status == ArchiveStatus.QUEUED.value

    def is_active_archived(self) -> bool:
        return self.status in ACTIVE_ARCHIVED_STATUSES

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def is_manual_entry(self) -> bool:
        return self.original_fid is None and self.asset_type in MANUAL_ASSET_TYPES

    def is_external(self) -> bool:
        """No local file behind the record (manual entries and remote URLs such as YouTube)."""
        if self.is_manual_entry():
            return True
        path = (self.original_path or "").lower()
        return self.original_fid is None and path.startswith(REMOTE_URL_PREFIXES)

    def is_blocked(self) -> bool:
        """Queued, but a previous execution attempt hit a gate."""
        return self.is_queued() and bool(self.flag_usage or self.flag_missing)

    def is_legacy_archive(self) -> bool:
        return self.archive_classification_date is not None and not self.flag_late_archive

    def is_checksum_pending(self) -> bool:
        return self.is_active_archived() and not self.is_external() and self.file_checksum is None

    # -------- Operation predicates --------
    def can_execute_archive(self) -> bool:
        return self.is_queued()

    def can_unarchive(self) -> bool:
        return self.is_active_archived() or self.status == ArchiveStatus.EXEMPTION_VOID.value

    def can_toggle_visibility(self) -> bool:
        return self.is_active_archived()

    def can_remove_from_queue(self) -> bool:
        return self.is_queued()

    def can_delete_file(self) -> bool:
        return self.is_active_archived() and not self.is_external()

    def can_edit(self) -> bool:
        return self.is_manual_entry() and not self.is_terminal()

    # -------- Flags --------
    def has_warning_flags(self) -> bool:
        return bool(self.flag_usage or self.flag_missing or self.flag_integrity or self.flag_modified)

    def clear_warning_flags(self) -> None:
        self.flag_usage = False
        self.flag_missing = False
        self.flag_integrity = False
        self.flag_modified = False

    def warning_labels(self) -> List[str]:
        labels = []
        if self.flag_usage:
            labels.append("Usage Detected")
        if self.flag_missing:
            labels.append("File Missing")
        if self.flag_integrity:
            labels.append("Integrity Violation")
        if self.flag_modified:
            labels.append("Modified")
        return labels

    def reason_label(self) -> str:
        if self.archive_reason == ArchiveReason.OTHER.value and self.archive_reason_other:
            return self.archive_reason_other
        try:
            return ArchiveReason(self.archive_reason).label
        except ValueError:
            return self.archive_reason

    def asset_type_label(self) -> Optional[str]:
        return ASSET_TYPE_LABELS.get(self.asset_type, (self.asset_type or "").upper())

    def __repr__(self) -> str:
        return f"<ArchiveRecord(id={self.id}, status={self.status}, path={self.original_path})>"


class ArchiveNote(Base):
    """Append-only audit note on an archive record."""

    __tablename__ = "archive_notes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    archive_id = Column(Integer, ForeignKey("archive_records.id"), nullable=False, index=True)
    note_text = Column(String(500), nullable=False)
    author = Column(String(255), nullable=False, default="system")
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<ArchiveNote(id={self.id}, archive_id={self.archive_id}, author={self.author})>"
