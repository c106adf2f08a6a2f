# digital_asset_inventory/services/database_service.py
"""
Database service for async SQLAlchemy session management.

Provides a singleton service for managing database connections, sessions,
and health checks. Supports both SQLite (development, tests) and
PostgreSQL (production).

Usage:
    from digital_asset_inventory.services.database_service import database_service

    # Get async session (context manager)
    async with database_service.get_session() as session:
        record = await archive_record_service.get_by_id(session, archive_id)

    # Initialize database (create tables)
    await database_service.init_db()

    # Health check
    health = await database_service.health_check()
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..config import settings
from ..database.base import Base


class DatabaseService:
    """
    Database service for managing async SQLAlchemy sessions.

    Attributes:
        _engine: Async SQLAlchemy engine
        _session_factory: Async session factory
        _logger: Logger instance

    Methods:
        get_session(): Get async database session (context manager)
        init_db(): Initialize database (create all tables)
        drop_db(): Drop all tables
        health_check(): Check database connectivity
        close(): Close database engine and connections
    """

    def __init__(self, database_url: Optional[str] = None):
        """
        Initialize database service.

        Args:
            database_url: Explicit database URL; defaults to settings.database_url
        """
        self._logger = logging.getLogger("dai.database")
        self._database_url = database_url or settings.database_url
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None
        self._initialize_engine()

    @property
    def database_type(self) -> str:
        return "sqlite" if self._database_url.startswith("sqlite") else "postgresql"

    @property
    def session_factory(self) -> async_sessionmaker:
        if not self._session_factory:
            raise RuntimeError("Database not initialized")
        return self._session_factory

    def _initialize_engine(self) -> None:
        """
        Initialize database engine based on the configured URL.

        SQLite Configuration:
            - Uses aiosqlite async driver
            - check_same_thread=False for async support
            - Creates data directory if needed

        PostgreSQL Configuration:
            - Uses asyncpg async driver
            - Connection pooling from DB_POOL_SIZE / DB_MAX_OVERFLOW
            - Pool pre-ping for connection health
        """
        database_url = self._database_url

        self._logger.info(f"Initializing database: {database_url.split('@')[-1].split('?')[0]}")

        if database_url.startswith("sqlite"):
            if ":///" in database_url:
                db_path = database_url.split("///")[1].split("?")[0]
                db_dir = os.path.dirname(db_path)
                if db_dir and not os.path.exists(db_dir):
                    os.makedirs(db_dir, exist_ok=True)
                    self._logger.info(f"Created database directory: {db_dir}")

            self._engine = create_async_engine(
                database_url,
                connect_args={"check_same_thread": False},
                pool_pre_ping=True,
                echo=settings.debug,
            )
        else:
            pool_size = int(os.getenv("DB_POOL_SIZE", "20"))
            max_overflow = int(os.getenv("DB_MAX_OVERFLOW", "40"))
            pool_recycle = int(os.getenv("DB_POOL_RECYCLE", "3600"))

            self._engine = create_async_engine(
                database_url,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_pre_ping=True,
                pool_recycle=pool_recycle,
                echo=settings.debug,
            )
            self._logger.info(
                f"Using PostgreSQL database (pool_size={pool_size}, max_overflow={max_overflow})"
            )

        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get async database session as context manager.

        Automatically handles commit on success and rollback on error.

        Raises:
            RuntimeError: If database is not initialized
        """
        if not self._session_factory:
            raise RuntimeError("Database not initialized")

        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def init_db(self) -> None:
        """
        Create all tables defined in the models if they don't exist.

        Safe to call multiple times.
        """
        if not self._engine:
            raise RuntimeError("Database engine not initialized")

        self._logger.info("Creating database tables...")

        async with self._engine.begin() as conn:
            # Import all models to ensure they're registered with Base
            from ..database import models  # noqa: F401

            await conn.run_sync(Base.metadata.create_all)

        self._logger.info("Database tables created successfully")

    async def drop_db(self) -> None:
        """Drop all tables. Used by tests and local resets."""
        if not self._engine:
            raise RuntimeError("Database engine not initialized")

        async with self._engine.begin() as conn:
            from ..database import models  # noqa: F401

            await conn.run_sync(Base.metadata.drop_all)

        self._logger.info("Database tables dropped")

    async def health_check(self) -> Dict[str, Any]:
        """
        Check database connectivity and gather row counts.

        Returns:
            Dict with health status:
                {
                    "status": "healthy" | "unhealthy",
                    "connected": True | False,
                    "database_type": "sqlite" | "postgresql",
                    "tables": {"assets": count, "usage_records": count, ...},
                    "error": "error message" (if unhealthy)
                }
        """
        from ..database.models import ArchiveNote, ArchiveRecord, Asset, OrphanReference, UsageRecord

        try:
            async with self.get_session() as session:
                await session.execute(text("SELECT 1"))

                tables = {}
                for model in (Asset, UsageRecord, OrphanReference, ArchiveRecord, ArchiveNote):
                    result = await session.execute(select(func.count()).select_from(model))
                    tables[model.__tablename__] = result.scalar() or 0

            return {
                "status": "healthy",
                "connected": True,
                "database_type": self.database_type,
                "tables": tables,
            }
        except Exception as e:
            self._logger.error(f"Database health check failed: {e}")
            return {
                "status": "unhealthy",
                "connected": False,
                "database_type": self.database_type,
                "error": str(e),
            }

    async def close(self) -> None:
        """Dispose the engine and close pooled connections."""
        if self._engine:
            await self._engine.dispose()
            self._logger.info("Database connections closed")


# Global database service instance
database_service = DatabaseService()
