import os
import shutil
import tempfile
from pathlib import Path


# Configure writable file roots and a scratch database before importing
# package modules (settings are read at import time).
_SESSION_DIR = Path(tempfile.mkdtemp(prefix="dai_pytest_"))

os.environ.setdefault("FILES_PUBLIC_ROOT", str(_SESSION_DIR / "public"))
os.environ.setdefault("FILES_PRIVATE_ROOT", str(_SESSION_DIR / "private"))
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_SESSION_DIR / 'inventory.db'}")

# Keep the broker out of unit tests
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")

for sub in ("public", "private"):
    Path(_SESSION_DIR / sub).mkdir(parents=True, exist_ok=True)

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from digital_asset_inventory.config import ArchiveConfig  # noqa: E402
from digital_asset_inventory.database import Base  # noqa: E402
from digital_asset_inventory.database.models import Asset, EmbedMethod, SourceType  # noqa: E402
from digital_asset_inventory.services.archive_service import ArchiveService  # noqa: E402
from digital_asset_inventory.services.asset_service import asset_service, url_hash  # noqa: E402
from digital_asset_inventory.services.file_path_resolver import FilePathResolver  # noqa: E402
from digital_asset_inventory.services.scanner_service import ScannerService  # noqa: E402


def pytest_sessionfinish(session, exitstatus):
    """Cleanup temporary test files after the test session."""
    shutil.rmtree(_SESSION_DIR, ignore_errors=True)


# ============================================================================
# DATABASE
# ============================================================================

@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine):
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with factory() as session:
        yield session


# ============================================================================
# FILE STORES
# ============================================================================

@pytest.fixture
def public_root(tmp_path):
    root = tmp_path / "public"
    root.mkdir()
    return root


@pytest.fixture
def private_root(tmp_path):
    root = tmp_path / "private"
    root.mkdir()
    return root


@pytest.fixture
def resolver(public_root, private_root):
    return FilePathResolver(str(public_root), str(private_root), "/sites/default/files")


@pytest.fixture
def make_file(public_root, private_root):
    """Write a file under the public (or private) root and return its path."""
    def _make(relative: str, content: bytes = b"archived content", private: bool = False) -> Path:
        path = (private_root if private else public_root) / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path
    return _make


# ============================================================================
# SERVICES
# ============================================================================

@pytest.fixture
def checksum_queue():
    """Archive ids handed to the deferred checksum queue."""
    return []


@pytest.fixture
def make_archive_service(resolver, checksum_queue):
    def _make(**config) -> ArchiveService:
        return ArchiveService(
            config=ArchiveConfig(**config),
            resolver=resolver,
            checksum_queue=checksum_queue.append,
        )
    return _make


@pytest.fixture
def archives(make_archive_service):
    return make_archive_service()


@pytest.fixture
def scanner(resolver, archives):
    return ScannerService(resolver=resolver, archives=archives)


@pytest.fixture
def make_asset(session):
    """Create a permanent inventory asset."""
    async def _make(
        file_path: str = "public://docs/report.pdf",
        asset_type: str = "pdf",
        category: str = "Documents",
        managed_file_id=None,
        mime_type: str = "application/pdf",
        file_size: int = 16,
    ) -> Asset:
        asset = Asset(
            file_name=file_path.rsplit("/", 1)[-1],
            file_path=file_path,
            url_hash=url_hash(file_path),
            asset_type=asset_type,
            category=category,
            mime_type=mime_type,
            source_type=(SourceType.FILE_MANAGED if managed_file_id else SourceType.FILESYSTEM_ONLY).value,
            managed_file_id=managed_file_id,
            file_size=file_size,
            is_temporary=False,
        )
        session.add(asset)
        await session.commit()
        return asset
    return _make


@pytest.fixture
def add_usage(session):
    """Reference a permanent asset from a node body field."""
    async def _add(asset: Asset, entity_id: int = 1) -> None:
        await asset_service.add_usage(
            session, asset.id, "node", entity_id, "body", EmbedMethod.TEXT_LINK, is_temporary=False
        )
        await session.commit()
    return _add
