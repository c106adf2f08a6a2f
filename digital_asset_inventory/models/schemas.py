"""
Pydantic projections of archive records for export/audit collaborators.

The export row is a verbatim projection: no business logic, every date in
ISO 8601 (UTC).

Usage:
    from digital_asset_inventory.models.schemas import ArchiveRecordExport
    rows = [ArchiveRecordExport.from_record(r).model_dump() for r in records]
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class ArchiveRecordExport(BaseModel):
    """Audit export row for one ArchiveRecord."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    archive_uuid: str
    status: str
    status_label: str
    original_fid: Optional[int] = None
    original_path: str
    archive_path: Optional[str] = None
    file_name: str
    asset_type: str
    mime_type: Optional[str] = None
    file_size: Optional[int] = None
    is_private: bool = False
    archive_reason: str
    archive_reason_other: Optional[str] = None
    public_description: Optional[str] = None
    internal_notes: Optional[str] = None
    file_checksum: Optional[str] = None
    archive_classification_date: Optional[datetime] = None
    classification: Optional[str] = Field(default=None, description="Legacy Archive or General Archive")
    flag_usage: bool = False
    flag_missing: bool = False
    flag_integrity: bool = False
    flag_modified: bool = False
    flag_late_archive: bool = False
    flag_prior_void: bool = False
    archived_while_in_use: bool = False
    usage_count_at_archive: int = 0
    archived_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_date: Optional[datetime] = None
    deleted_by: Optional[str] = None

    @field_serializer(
        "archive_classification_date", "created_at", "updated_at", "deleted_date"
    )
    def _serialize_date(self, value: Optional[datetime]) -> Optional[str]:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()

    @classmethod
    def from_record(cls, record) -> "ArchiveRecordExport":
        export = cls.model_validate(record)
        if record.archive_classification_date is not None:
            export.classification = "General Archive" if record.flag_late_archive else "Legacy Archive"
        return export


class ArchiveNoteExport(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    archive_id: int
    note_text: str
    author: str
    created_at: datetime

    @field_serializer("created_at")
    def _serialize_created(self, value: datetime) -> str:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
