# digital_asset_inventory/database/__init__.py
"""
Database package for the digital asset inventory.

Provides SQLAlchemy models and the declarative base.
"""

from .base import Base
from .models import (
    ArchiveNote,
    ArchiveReason,
    ArchiveRecord,
    ArchiveStatus,
    ArchiveVisibility,
    Asset,
    EmbedMethod,
    ImmutableFieldError,
    OrphanContext,
    OrphanReference,
    SourceType,
    UsageRecord,
)

__all__ = [
    "Base",
    "Asset",
    "UsageRecord",
    "OrphanReference",
    "ArchiveRecord",
    "ArchiveNote",
    "ArchiveStatus",
    "ArchiveVisibility",
    "ArchiveReason",
    "SourceType",
    "EmbedMethod",
    "OrphanContext",
    "ImmutableFieldError",
]
