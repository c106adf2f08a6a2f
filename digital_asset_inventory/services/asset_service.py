# digital_asset_inventory/services/asset_service.py
"""
Asset and usage repository.

Owns the ``assets``, ``usage_records`` and ``orphan_references`` tables. The inventory scanner writes
through this service (always into temporary rows); the archive lifecycle
engine reads permanent rows to compute live usage counts.

Usage:
    from digital_asset_inventory.services.asset_service import asset_service

    asset = await asset_service.upsert_asset(session, file_path="public://a.pdf", ...)
    await asset_service.add_usage(session, asset.id, "node", 12, "body", EmbedMethod.TEXT_LINK)
    count = await asset_service.get_usage_count(session, managed_file_id=7, file_path=None)
"""

import hashlib
import logging
from typing import List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.models import Asset, EmbedMethod, OrphanContext, OrphanReference, SourceType, UsageRecord, utcnow

logger = logging.getLogger("dai.assets")


def url_hash(value: str) -> str:
    """md5 of a path/URL, used to deduplicate assets within a scan."""
    return hashlib.md5(value.encode("utf-8")).hexdigest()


class AssetService:
    """
    CRUD over assets and usage records.

    Every lookup takes an ``is_temporary`` flag so scan-time code never sees
    permanent rows and read-side code never sees half-built temporary rows.
    """

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def get_asset(self, session: AsyncSession, asset_id: int) -> Optional[Asset]:
        return await session.get(Asset, asset_id)

    async def find_by_managed_file_id(
        self, session: AsyncSession, managed_file_id: int, is_temporary: bool = False
    ) -> Optional[Asset]:
        result = await session.execute(
            select(Asset)
            .where(Asset.managed_file_id == managed_file_id, Asset.is_temporary.is_(is_temporary))
            .order_by(Asset.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_by_path(
        self, session: AsyncSession, file_path: str, is_temporary: bool = False
    ) -> Optional[Asset]:
        result = await session.execute(
            select(Asset)
            .where(Asset.file_path == file_path, Asset.is_temporary.is_(is_temporary))
            .order_by(Asset.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_by_url_hash(
        self, session: AsyncSession, hash_value: str, is_temporary: bool = True
    ) -> Optional[Asset]:
        result = await session.execute(
            select(Asset)
            .where(Asset.url_hash == hash_value, Asset.is_temporary.is_(is_temporary))
            .order_by(Asset.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_for_archive(
        self, session: AsyncSession, managed_file_id: Optional[int], file_path: Optional[str]
    ) -> Optional[Asset]:
        """Permanent asset for an archived file: by managed file id, else by exact path."""
        if managed_file_id is not None:
            return await self.find_by_managed_file_id(session, managed_file_id)
        if file_path:
            return await self.find_by_path(session, file_path)
        return None

    async def list_assets(
        self,
        session: AsyncSession,
        is_temporary: bool = False,
        category: Optional[str] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[Asset]:
        query = select(Asset).where(Asset.is_temporary.is_(is_temporary))
        if category:
            query = query.where(Asset.category == category)
        query = query.order_by(Asset.id).offset(offset)
        if limit is not None:
            query = query.limit(limit)
        result = await session.execute(query)
        return list(result.scalars().all())

    async def count_assets(self, session: AsyncSession, is_temporary: bool = False) -> int:
        result = await session.execute(
            select(func.count(Asset.id)).where(Asset.is_temporary.is_(is_temporary))
        )
        return result.scalar() or 0

    async def list_usage(self, session: AsyncSession, asset_id: int) -> List[UsageRecord]:
        result = await session.execute(
            select(UsageRecord).where(UsageRecord.asset_id == asset_id).order_by(UsageRecord.id)
        )
        return list(result.scalars().all())

    async def count_usage(self, session: AsyncSession, asset_id: int) -> int:
        """Number of places that reference an asset."""
        result = await session.execute(
            select(func.count(UsageRecord.id)).where(UsageRecord.asset_id == asset_id)
        )
        return result.scalar() or 0

    async def count_usage_records(self, session: AsyncSession, is_temporary: bool = False) -> int:
        result = await session.execute(
            select(func.count(UsageRecord.id)).where(UsageRecord.is_temporary.is_(is_temporary))
        )
        return result.scalar() or 0

    async def list_orphan_references(self, session: AsyncSession, asset_id: int) -> List[OrphanReference]:
        result = await session.execute(
            select(OrphanReference).where(OrphanReference.asset_id == asset_id).order_by(OrphanReference.id)
        )
        return list(result.scalars().all())

    async def count_orphan_references(self, session: AsyncSession, is_temporary: bool = False) -> int:
        result = await session.execute(
            select(func.count(OrphanReference.id)).where(OrphanReference.is_temporary.is_(is_temporary))
        )
        return result.scalar() or 0

    async def get_usage_count(
        self, session: AsyncSession, managed_file_id: Optional[int], file_path: Optional[str]
    ) -> int:
        """
        Live usage count for an archived file.

        No matching permanent asset means the file is not used (0).
        """
        asset = await self.find_for_archive(session, managed_file_id, file_path)
        if asset is None:
            return 0
        return await self.count_usage(session, asset.id)

    # =========================================================================
    # WRITE OPERATIONS (scan time)
    # =========================================================================

    async def upsert_asset(
        self,
        session: AsyncSession,
        *,
        file_path: str,
        file_name: str,
        asset_type: str,
        category: str,
        source_type: SourceType,
        mime_type: Optional[str] = None,
        managed_file_id: Optional[int] = None,
        media_id: Optional[int] = None,
        file_size: int = 0,
        is_private: bool = False,
        hash_source: Optional[str] = None,
        is_temporary: bool = True,
    ) -> Asset:
        """
        Create or update the asset for a file/URL within one staging set.

        Rows are matched by managed file id when one is given, otherwise by
        the md5 of ``hash_source`` (defaults to file_path). Only rows with the
        same ``is_temporary`` flag are looked at, so a scan writing temporary
        rows never touches the permanent inventory.
        """
        hash_value = url_hash(hash_source or file_path)
        existing = None
        if managed_file_id is not None:
            existing = await self.find_by_managed_file_id(session, managed_file_id, is_temporary=is_temporary)
        if existing is None:
            existing = await self.find_by_url_hash(session, hash_value, is_temporary=is_temporary)

        if existing is not None:
            existing.file_name = file_name
            existing.file_path = file_path
            existing.asset_type = asset_type
            existing.category = category
            existing.mime_type = mime_type
            existing.file_size = file_size
            existing.is_private = is_private
            if media_id is not None:
                existing.media_id = media_id
            # Managed files win over media/filesystem discoveries of the same file
            if source_type == SourceType.FILE_MANAGED or existing.source_type == SourceType.FILESYSTEM_ONLY.value:
                existing.source_type = SourceType(source_type).value
            existing.updated_at = utcnow()
            await session.flush()
            return existing

        asset = Asset(
            file_name=file_name,
            file_path=file_path,
            url_hash=hash_value,
            asset_type=asset_type,
            category=category,
            mime_type=mime_type,
            source_type=SourceType(source_type).value,
            managed_file_id=managed_file_id,
            media_id=media_id,
            file_size=file_size,
            is_private=is_private,
            is_temporary=is_temporary,
        )
        session.add(asset)
        await session.flush()
        return asset

    async def add_usage(
        self,
        session: AsyncSession,
        asset_id: int,
        entity_type: str,
        entity_id: int,
        field_name: str,
        embed_method: EmbedMethod,
        is_temporary: bool = True,
    ) -> UsageRecord:
        """
        Record that an entity field references an asset.

        A repeated reference from the same entity field with the same embed
        method increments ``count`` instead of adding a row.
        """
        method = EmbedMethod(embed_method).value
        result = await session.execute(
            select(UsageRecord).where(
                UsageRecord.asset_id == asset_id,
                UsageRecord.entity_type == entity_type,
                UsageRecord.entity_id == entity_id,
                UsageRecord.field_name == field_name,
                UsageRecord.embed_method == method,
                UsageRecord.is_temporary.is_(is_temporary),
            )
        )
        existing = result.scalar_one_or_none()
        if existing is not None:
            existing.count += 1
            await session.flush()
            return existing

        usage = UsageRecord(
            asset_id=asset_id,
            entity_type=entity_type,
            entity_id=entity_id,
            field_name=field_name,
            embed_method=method,
            count=1,
            is_temporary=is_temporary,
        )
        session.add(usage)
        await session.flush()
        return usage

    async def add_orphan_reference(
        self,
        session: AsyncSession,
        asset_id: int,
        entity_type: str,
        entity_id: int,
        field_name: str,
        embed_method: EmbedMethod,
        reference_context: OrphanContext,
        bundle: Optional[str] = None,
        is_temporary: bool = True,
    ) -> OrphanReference:
        """Record a reference from an orphaned host; it does not count as usage."""
        reference = OrphanReference(
            asset_id=asset_id,
            source_entity_type=entity_type,
            source_bundle=bundle or "",
            source_entity_id=entity_id,
            field_name=field_name or "",
            embed_method=EmbedMethod(embed_method).value,
            reference_context=OrphanContext(reference_context).value,
            is_temporary=is_temporary,
        )
        session.add(reference)
        await session.flush()
        return reference

    # =========================================================================
    # BULK OPERATIONS (swap / cleanup)
    # =========================================================================

    async def delete_usage_records(self, session: AsyncSession, is_temporary: Optional[bool] = None) -> int:
        """Delete usage rows; all rows when is_temporary is None."""
        stmt = delete(UsageRecord)
        if is_temporary is not None:
            stmt = stmt.where(UsageRecord.is_temporary.is_(is_temporary))
        result = await session.execute(stmt)
        return result.rowcount or 0

    async def delete_orphan_references(self, session: AsyncSession, is_temporary: Optional[bool] = None) -> int:
        stmt = delete(OrphanReference)
        if is_temporary is not None:
            stmt = stmt.where(OrphanReference.is_temporary.is_(is_temporary))
        result = await session.execute(stmt)
        return result.rowcount or 0

    async def delete_assets(self, session: AsyncSession, is_temporary: bool) -> int:
        """Delete assets. Callers must delete the matching usage and orphan rows first."""
        result = await session.execute(delete(Asset).where(Asset.is_temporary.is_(is_temporary)))
        return result.rowcount or 0

    async def mark_temporary_as_permanent(self, session: AsyncSession) -> int:
        result = await session.execute(
            update(Asset).where(Asset.is_temporary.is_(True)).values(is_temporary=False)
        )
        await session.execute(
            update(UsageRecord).where(UsageRecord.is_temporary.is_(True)).values(is_temporary=False)
        )
        await session.execute(
            update(OrphanReference).where(OrphanReference.is_temporary.is_(True)).values(is_temporary=False)
        )
        return result.rowcount or 0


# Global asset service instance
asset_service = AssetService()
