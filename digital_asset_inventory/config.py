# ============================================================================
# Digital Asset Inventory - Application Configuration
# ============================================================================
"""
Application configuration module using Pydantic Settings.

This module defines all configuration parameters for the digital asset
inventory, including:
- Database connection
- Public/private file storage roots and URL base paths
- Archive feature flags and the accessibility compliance deadline
- Scanner chunking and the asset type catalogue
- Celery broker/backend

Environment Variables:
    Every field can be overridden by an upper-cased environment variable
    (e.g. ALLOW_ARCHIVE_IN_USE=true) or a .env file.

Usage:
    from digital_asset_inventory.config import settings
    archive_config = settings.archive_config()
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings

DEFAULT_COMPLIANCE_DEADLINE = datetime(2026, 4, 24, 0, 0, 0, tzinfo=timezone.utc)
DEFAULT_ASSET_TYPES_CONFIG = str(Path(__file__).parent / "asset_types.yml")


def to_naive_utc(value: datetime) -> datetime:
    """Normalize a datetime to naive UTC (the form stored in the database)."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class ArchiveConfig(BaseModel):
    """
    Immutable archive policy passed to the lifecycle engine.

    Classification decisions depend only on this value object, so the same
    inputs always yield the same Legacy/General outcome.
    """
    model_config = ConfigDict(frozen=True)

    archive_feature_enabled: bool = Field(default=False, description="Route links to archive detail pages")
    allow_archive_in_use: bool = Field(default=False, description="Permit archiving assets still referenced by content")
    compliance_deadline: datetime = Field(
        default=DEFAULT_COMPLIANCE_DEADLINE,
        description="Legacy/General classification cutoff (UTC)",
        validate_default=True,
    )
    show_archived_label: bool = Field(default=False, description="Show a label next to archived links")
    archived_label_text: str = Field(default="Archived", description="Label text for archived links")
    checksum_size_limit: int = Field(
        default=52428800,
        ge=0,
        description="Files larger than this (bytes) get their checksum computed by the queue",
    )

    @field_validator("compliance_deadline")
    @classmethod
    def _normalize_deadline(cls, value: datetime) -> datetime:
        return to_naive_utc(value)


class Settings(BaseSettings):
    # =========================================================================
    # DATABASE SETTINGS
    # =========================================================================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/asset_inventory.db",
        description="Async SQLAlchemy database URL",
    )
    debug: bool = Field(default=False, description="Enable SQL echo & verbose logging")

    # =========================================================================
    # FILE STORAGE SETTINGS
    # =========================================================================
    files_public_root: str = Field(default="./files/public", description="Filesystem root of public://")
    files_private_root: str = Field(default="./files/private", description="Filesystem root of private://")
    public_files_base_path: str = Field(
        default="/sites/default/files",
        description="URL path under which public files are served",
    )
    private_files_base_path: str = Field(
        default="/system/files",
        description="URL path under which private files are served",
    )

    # =========================================================================
    # ARCHIVE SETTINGS
    # =========================================================================
    archive_feature_enabled: bool = Field(default=False, description="Enable archive link routing")
    allow_archive_in_use: bool = Field(default=False, description="Allow archiving assets that are in use")
    compliance_deadline: datetime = Field(
        default=DEFAULT_COMPLIANCE_DEADLINE,
        description="Accessibility compliance deadline (ISO 8601)",
    )
    show_archived_label: bool = Field(default=False, description="Show archived label on links")
    archived_label_text: str = Field(default="Archived", description="Archived label text")
    checksum_size_limit: int = Field(default=52428800, description="Max bytes hashed synchronously")

    # =========================================================================
    # SCANNER SETTINGS
    # =========================================================================
    scan_chunk_size: int = Field(default=50, ge=1, description="Source rows processed per scan chunk")
    asset_types_config: str = Field(
        default=DEFAULT_ASSET_TYPES_CONFIG,
        description="Path to the asset type catalogue (YAML)",
    )

    # =========================================================================
    # CELERY SETTINGS
    # =========================================================================
    celery_broker_url: str = Field(default="redis://redis:6379/0", description="Celery broker URL")
    celery_result_backend: str = Field(default="redis://redis:6379/1", description="Celery result backend")
    reconcile_schedule_hour: Optional[int] = Field(
        default=3,
        description="Hour (UTC) of the nightly archive reconciliation; unset disables it",
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    # -------- Path helpers (preferred by services) --------
    @property
    def public_root_path(self) -> Path:
        return Path(self.files_public_root)

    @property
    def private_root_path(self) -> Path:
        return Path(self.files_private_root)

    def archive_config(self) -> ArchiveConfig:
        """Snapshot the archive policy as an immutable value object."""
        return ArchiveConfig(
            archive_feature_enabled=self.archive_feature_enabled,
            allow_archive_in_use=self.allow_archive_in_use,
            compliance_deadline=self.compliance_deadline,
            show_archived_label=self.show_archived_label,
            archived_label_text=self.archived_label_text,
            checksum_size_limit=self.checksum_size_limit,
        )


# Global settings instance (imported elsewhere)
settings = Settings()
