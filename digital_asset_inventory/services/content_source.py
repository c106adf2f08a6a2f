# digital_asset_inventory/services/content_source.py
"""
Content source collaborator for the inventory scanner.

The scanner never talks to the CMS directly. It pulls managed files, text
fields, remote media and menu links through a ContentSource, one bounded page
at a time, and walks the file stores for orphaned files.

References whose host entity is no longer attached to content (a component
whose parent was deleted, or one dropped in a later revision) carry an
orphan_context. The scanner stores them as orphan references, which never
count as usage.

Implementations:
    - FilesystemContentSource: walks the public/private file roots only
    - InMemoryContentSource: dataclass-backed source for imports and tests

Usage:
    source = InMemoryContentSource(
        managed_files=[ManagedFile(fid=1, uri="public://a.pdf", filename="a.pdf",
                                   mime_type="application/pdf", size=1024)],
        filesystem=FilesystemContentSource(),
    )
    await scanner_service.run_full_scan(session, source)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Protocol, runtime_checkable

from ..database.models import EmbedMethod, OrphanContext
from .asset_classifier import KNOWN_EXTENSIONS
from .file_path_resolver import FilePathResolver, file_path_resolver

EXCLUDED_DIRECTORIES = frozenset({
    "styles",
    "thumbnails",
    "media-icons",
    "oembed_thumbnails",
    "video_thumbnails",
    "css",
    "js",
    "php",
    "ctools",
    "xmlsitemap",
    "archive",
    "private",
})
EXCLUDED_DIRECTORY_PREFIXES = ("config_",)


# ============================================================================
# SOURCE ROWS
# ============================================================================

@dataclass
class ManagedFile:
    """A file registered in the CMS file store."""
    fid: int
    uri: str
    filename: str
    mime_type: Optional[str] = None
    size: int = 0
    media_id: Optional[int] = None


@dataclass
class FileReference:
    """An entity field that references a managed file or media item."""
    entity_type: str
    entity_id: int
    field_name: str
    embed_method: EmbedMethod = EmbedMethod.FIELD_REFERENCE
    orphan_context: Optional[OrphanContext] = None
    bundle: Optional[str] = None


@dataclass
class TextField:
    """A text or link field value on a content entity."""
    entity_type: str
    entity_id: int
    field_name: str
    value: str
    is_link: bool = False
    orphan_context: Optional[OrphanContext] = None
    bundle: Optional[str] = None


@dataclass
class RemoteMedia:
    """A remote video (oEmbed) media item and the entities embedding it."""
    media_id: int
    url: str
    name: Optional[str] = None
    references: List[FileReference] = field(default_factory=list)


@dataclass
class MenuLink:
    """A menu link pointing at a file or external resource."""
    link_id: int
    menu_name: str
    url: str
    title: Optional[str] = None


@dataclass
class FilesystemFile:
    """A file found on disk under one of the file roots."""
    uri: str
    path: Path
    size: int
    is_private: bool = False


@runtime_checkable
class ContentSource(Protocol):
    """Read side of the CMS used by the scanner (paged by offset/limit)."""

    async def count_managed_files(self) -> int: ...

    async def list_managed_files(self, offset: int, limit: int) -> List[ManagedFile]: ...

    async def managed_file_usage(self, fid: int) -> List[FileReference]: ...

    async def count_filesystem_files(self) -> int: ...

    async def list_filesystem_files(self, offset: int, limit: int) -> List[FilesystemFile]: ...

    async def count_text_fields(self) -> int: ...

    async def list_text_fields(self, offset: int, limit: int) -> List[TextField]: ...

    async def count_remote_media(self) -> int: ...

    async def list_remote_media(self, offset: int, limit: int) -> List[RemoteMedia]: ...

    async def count_menu_links(self) -> int: ...

    async def list_menu_links(self, offset: int, limit: int) -> List[MenuLink]: ...


# ============================================================================
# IMPLEMENTATIONS
# ============================================================================

def _is_excluded_directory(name: str, allow_private: bool) -> bool:
    if allow_private and name == "private":
        return False
    return name in EXCLUDED_DIRECTORIES or name.startswith(EXCLUDED_DIRECTORY_PREFIXES)


class FilesystemContentSource:
    """
    Walks the public and private file roots for files with known extensions.

    Generated derivatives (image styles, thumbnails, aggregated css/js, ...)
    are skipped. The private root is walked in full.

    count_filesystem_files() walks both roots and keeps the result; pages are
    sliced from that walk until the next count.
    """

    def __init__(self, resolver: Optional[FilePathResolver] = None):
        self.resolver = resolver or file_path_resolver
        self._files: Optional[List[FilesystemFile]] = None

    def _walk(self, root: Path, is_private: bool) -> List[FilesystemFile]:
        files: List[FilesystemFile] = []
        if not root.is_dir():
            return files

        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if not _is_excluded_directory(d, is_private))
            for filename in sorted(filenames):
                extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
                if extension not in KNOWN_EXTENSIONS:
                    continue
                path = Path(dirpath) / filename
                files.append(FilesystemFile(
                    uri=self.resolver.path_to_stream_uri(path, private=is_private),
                    path=path,
                    size=path.stat().st_size,
                    is_private=is_private,
                ))
        return files

    async def count_filesystem_files(self) -> int:
        self._files = (
            self._walk(self.resolver.public_root, is_private=False)
            + self._walk(self.resolver.private_root, is_private=True)
        )
        return len(self._files)

    async def list_filesystem_files(self, offset: int, limit: int) -> List[FilesystemFile]:
        if self._files is None:
            await self.count_filesystem_files()
        return self._files[offset:offset + limit]

    async def count_managed_files(self) -> int:
        return 0

    async def list_managed_files(self, offset: int, limit: int) -> List[ManagedFile]:
        return []

    async def managed_file_usage(self, fid: int) -> List[FileReference]:
        return []

    async def count_text_fields(self) -> int:
        return 0

    async def list_text_fields(self, offset: int, limit: int) -> List[TextField]:
        return []

    async def count_remote_media(self) -> int:
        return 0

    async def list_remote_media(self, offset: int, limit: int) -> List[RemoteMedia]:
        return []

    async def count_menu_links(self) -> int:
        return 0

    async def list_menu_links(self, offset: int, limit: int) -> List[MenuLink]:
        return []


@dataclass
class InMemoryContentSource:
    """ContentSource over plain lists; the filesystem walk is delegated when given."""
    managed_files: List[ManagedFile] = field(default_factory=list)
    file_usage: Dict[int, List[FileReference]] = field(default_factory=dict)
    text_fields: List[TextField] = field(default_factory=list)
    remote_media: List[RemoteMedia] = field(default_factory=list)
    menu_links: List[MenuLink] = field(default_factory=list)
    filesystem_files: List[FilesystemFile] = field(default_factory=list)
    filesystem: Optional[FilesystemContentSource] = None

    async def count_managed_files(self) -> int:
        return len(self.managed_files)

    async def list_managed_files(self, offset: int, limit: int) -> List[ManagedFile]:
        return self.managed_files[offset:offset + limit]

    async def managed_file_usage(self, fid: int) -> List[FileReference]:
        return list(self.file_usage.get(fid, []))

    async def count_filesystem_files(self) -> int:
        if self.filesystem is not None:
            return await self.filesystem.count_filesystem_files()
        return len(self.filesystem_files)

    async def list_filesystem_files(self, offset: int, limit: int) -> List[FilesystemFile]:
        if self.filesystem is not None:
            return await self.filesystem.list_filesystem_files(offset, limit)
        return self.filesystem_files[offset:offset + limit]

    async def count_text_fields(self) -> int:
        return len(self.text_fields)

    async def list_text_fields(self, offset: int, limit: int) -> List[TextField]:
        return self.text_fields[offset:offset + limit]

    async def count_remote_media(self) -> int:
        return len(self.remote_media)

    async def list_remote_media(self, offset: int, limit: int) -> List[RemoteMedia]:
        return self.remote_media[offset:offset + limit]

    async def count_menu_links(self) -> int:
        return len(self.menu_links)

    async def list_menu_links(self, offset: int, limit: int) -> List[MenuLink]:
        return self.menu_links[offset:offset + limit]
