# digital_asset_inventory/services/file_path_resolver.py
"""
File path resolution between site URLs, stream URIs and filesystem paths.

Files are addressed three ways across the inventory:
    - URLs as they appear in content (https://site/sites/default/files/a.pdf,
      /system/files/b.pdf)
    - Stream URIs as stored on assets (public://a.pdf, private://b.pdf)
    - Absolute filesystem paths under the configured public/private roots

Usage:
    from digital_asset_inventory.services.file_path_resolver import file_path_resolver

    uri = file_path_resolver.url_path_to_stream_uri("/sites/default/files/a.pdf")
    path = file_path_resolver.stream_uri_to_path(uri)
    path = await file_path_resolver.resolve_record_path(session, archive_record)
"""

import html
import logging
import re
from pathlib import Path
from typing import List, Optional
from urllib.parse import unquote, urlparse

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database.models import ArchiveRecord, Asset

logger = logging.getLogger("dai.paths")

PUBLIC_SCHEME = "public://"
PRIVATE_SCHEME = "private://"

_SITES_PRIVATE_RE = re.compile(r"/?sites/[^/]+/files/private/(.+)$")
_SITES_PUBLIC_RE = re.compile(r"/?sites/[^/]+/files/(.+)$")
_SYSTEM_FILES_RE = re.compile(r"/?system/files/(.+)$")
_QUERY_FRAGMENT_RE = re.compile(r"[?#].*$")


class FilePathResolver:
    """
    Maps URLs and stream URIs onto filesystem paths.

    Args:
        public_root: Filesystem directory behind public://
        private_root: Filesystem directory behind private://
        public_base_path: URL path where public files are served (e.g. /sites/default/files)
    """

    def __init__(
        self,
        public_root: Optional[str] = None,
        private_root: Optional[str] = None,
        public_base_path: Optional[str] = None,
    ):
        self.public_root = Path(public_root or settings.files_public_root)
        self.private_root = Path(private_root or settings.files_private_root)
        base = public_base_path if public_base_path is not None else settings.public_files_base_path
        # Leading slash, no trailing slash
        self.public_base_path = "/" + base.strip("/")

    # ------------------------------------------------------------------
    # URL -> stream URI
    # ------------------------------------------------------------------
    def url_path_to_stream_uri(self, url_or_path: str) -> Optional[str]:
        """
        Convert a file URL or URL path into a public:// or private:// URI.

        Returns None when the value does not point at a local file.
        """
        value = url_or_path.strip(" \t\n\r\0\x0b\"'")

        if value.startswith(PUBLIC_SCHEME) or value.startswith(PRIVATE_SCHEME):
            return value

        if value.startswith("//"):
            value = "https:" + value

        path = value
        if value.startswith("http://") or value.startswith("https://"):
            path = urlparse(value).path or ""

        path = _QUERY_FRAGMENT_RE.sub("", path)

        # Private files served below the public path must be checked first
        match = _SITES_PRIVATE_RE.search(path)
        if match:
            return PRIVATE_SCHEME + unquote(match.group(1))

        match = _SITES_PUBLIC_RE.search(path)
        if match:
            return PUBLIC_SCHEME + unquote(match.group(1))

        base_with_private = self.public_base_path + "/private/"
        if path.startswith(base_with_private):
            return PRIVATE_SCHEME + unquote(path[len(base_with_private):])

        base_with_slash = self.public_base_path + "/"
        if path.startswith(base_with_slash):
            return PUBLIC_SCHEME + unquote(path[len(base_with_slash):])

        match = _SYSTEM_FILES_RE.search(path)
        if match:
            return PRIVATE_SCHEME + unquote(match.group(1))

        return None

    def extract_local_file_urls(self, text: str) -> List[str]:
        """Find local file URLs (public or private) inside HTML/text content."""
        text = html.unescape(text)
        public_base = re.escape(self.public_base_path)
        patterns = [
            r"/sites/[^/]+/files/[^\"'>\s?#]+",
            rf"(?:{public_base})/[^\"'>\s?#]+",
            r"/system/files/[^\"'>\s?#]+",
        ]

        matches: List[str] = []
        for pattern in patterns:
            for found in re.findall(pattern, text, flags=re.IGNORECASE):
                url = _QUERY_FRAGMENT_RE.sub("", found)
                if url not in matches:
                    matches.append(url)
        return matches

    def extract_local_file_uris(self, text: str) -> List[str]:
        uris: List[str] = []
        for url in self.extract_local_file_urls(text):
            uri = self.url_path_to_stream_uri(url)
            if uri and uri not in uris:
                uris.append(uri)
        return uris

    # ------------------------------------------------------------------
    # Stream URI <-> filesystem
    # ------------------------------------------------------------------
    def stream_uri_to_path(self, uri: str) -> Optional[Path]:
        """Map a stream URI to an absolute path; None for anything else."""
        if uri.startswith(PUBLIC_SCHEME):
            return self.public_root / uri[len(PUBLIC_SCHEME):]
        if uri.startswith(PRIVATE_SCHEME):
            return self.private_root / uri[len(PRIVATE_SCHEME):]
        return None

    def path_to_stream_uri(self, path: Path, private: bool = False) -> str:
        root = self.private_root if private else self.public_root
        relative = Path(path).relative_to(root).as_posix()
        return (PRIVATE_SCHEME if private else PUBLIC_SCHEME) + relative

    def stream_uri_to_url_path(self, uri: str) -> Optional[str]:
        if uri.startswith(PUBLIC_SCHEME):
            return f"{self.public_base_path}/{uri[len(PUBLIC_SCHEME):]}"
        if uri.startswith(PRIVATE_SCHEME):
            return f"{settings.private_files_base_path.rstrip('/')}/{uri[len(PRIVATE_SCHEME):]}"
        return None

    def resolve_source_uri(self, original_path: str) -> Optional[str]:
        """Stream URI for a stored path (URI passthrough, local URLs mapped)."""
        if not original_path:
            return None
        return self.url_path_to_stream_uri(original_path)

    async def resolve_record_path(self, session: AsyncSession, record) -> Optional[Path]:
        """
        Resolve an ArchiveRecord (or Asset) to its filesystem path.

        The managed file id is preferred: the permanent asset carrying that id
        gives the stored URI. Otherwise the record's own path/URL is mapped.
        """
        if isinstance(record, ArchiveRecord):
            fid, original_path = record.original_fid, record.original_path
        else:
            fid, original_path = record.managed_file_id, record.file_path

        if fid is not None:
            result = await session.execute(
                select(Asset.file_path)
                .where(Asset.managed_file_id == fid, Asset.is_temporary.is_(False))
                .limit(1)
            )
            stored_uri = result.scalar_one_or_none()
            if stored_uri:
                path = self.stream_uri_to_path(stored_uri)
                if path is not None:
                    return path

        uri = self.resolve_source_uri(original_path)
        if uri is None:
            logger.debug(f"Could not resolve a local file for {original_path}")
            return None
        return self.stream_uri_to_path(uri)


# Global resolver instance
file_path_resolver = FilePathResolver()
