# digital_asset_inventory/services/asset_classifier.py
"""
Asset classification helpers used by the inventory scanner.

Maps MIME types and file extensions to granular asset types, asset types to
categories (via the YAML catalogue), and external URLs to asset types by URL
pattern. Also extracts file/resource references from HTML content.

Usage:
    from digital_asset_inventory.services.asset_classifier import asset_classifier

    asset_classifier.map_mime_to_asset_type("application/pdf")      # "pdf"
    asset_classifier.get_category("pdf")                             # "Documents"
    asset_classifier.normalize_video_url("https://youtu.be/dQw4w9WgXcQ")
    refs = asset_classifier.extract_references('<a href="/sites/default/files/a.pdf">A</a>')
"""

import logging
import re
from functools import cached_property
from typing import Dict, List, Optional, Tuple

from bs4 import BeautifulSoup

from ..config import settings
from ..database.models import EmbedMethod
from ..models.config_models import AssetTypesConfig

logger = logging.getLogger("dai.classifier")

MIME_TO_ASSET_TYPE = {
    # Documents
    "application/pdf": "pdf",
    "application/msword": "word",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "word",
    "application/vnd.ms-excel": "excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "excel",
    "application/vnd.ms-powerpoint": "powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": "powerpoint",
    "text/plain": "text",
    "text/csv": "csv",
    "application/csv": "csv",
    # Captions
    "text/vtt": "vtt",
    "application/x-subrip": "srt",
    "text/srt": "srt",
    # Images
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/svg+xml": "svg",
    "image/webp": "webp",
    # Videos
    "video/mp4": "mp4",
    "video/webm": "webm",
    "video/quicktime": "mov",
    "video/x-msvideo": "avi",
    # Audio
    "audio/mpeg": "mp3",
    "audio/wav": "wav",
    "audio/mp4": "m4a",
    "audio/ogg": "ogg",
    # Compressed
    "application/zip": "compressed",
    "application/x-tar": "compressed",
    "application/gzip": "compressed",
    "application/x-gzip": "compressed",
    "application/x-7z-compressed": "compressed",
    "application/x-rar-compressed": "compressed",
}

EXTENSION_TO_MIME = {
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "ppt": "application/vnd.ms-powerpoint",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "txt": "text/plain",
    "csv": "text/csv",
    "vtt": "text/vtt",
    "srt": "application/x-subrip",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "svg": "image/svg+xml",
    "webp": "image/webp",
    "mp4": "video/mp4",
    "webm": "video/webm",
    "mov": "video/quicktime",
    "avi": "video/x-msvideo",
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "m4a": "audio/mp4",
    "ogg": "audio/ogg",
    "zip": "application/zip",
    "tar": "application/x-tar",
    "gz": "application/gzip",
    "7z": "application/x-7z-compressed",
    "rar": "application/x-rar-compressed",
}

KNOWN_EXTENSIONS = frozenset(EXTENSION_TO_MIME)

URL_RE = re.compile(r"https?://[^\s<>\"{}|\\^`\[\]]+", re.IGNORECASE)

_YOUTUBE_PATTERNS = [
    re.compile(r"(?:https?://)?(?:www\.)?youtube\.com/watch\?(?:.*&)?v=([a-zA-Z0-9_-]{11})(?:&|$)", re.I),
    re.compile(r"(?:https?://)?youtu\.be/([a-zA-Z0-9_-]{11})(?:\?|$)", re.I),
    re.compile(r"(?:https?://)?(?:www\.)?youtube\.com/embed/([a-zA-Z0-9_-]{11})(?:\?|$)", re.I),
    re.compile(r"(?:https?://)?(?:www\.)?youtube\.com/v/([a-zA-Z0-9_-]{11})(?:\?|$)", re.I),
    re.compile(r"(?:https?://)?(?:www\.)?youtube\.com/shorts/([a-zA-Z0-9_-]{11})(?:\?|$)", re.I),
    re.compile(r"(?:https?://)?(?:www\.)?youtube-nocookie\.com/embed/([a-zA-Z0-9_-]{11})(?:\?|$)", re.I),
]
_VIMEO_PATTERNS = [
    re.compile(r"(?:https?://)?(?:www\.)?vimeo\.com/(\d+)(?:\?|/|$)", re.I),
    re.compile(r"(?:https?://)?player\.vimeo\.com/video/(\d+)(?:\?|$)", re.I),
]
_YOUTUBE_ID_RE = re.compile(r"^[a-zA-Z0-9_-]{11}$")
_VIMEO_ID_RE = re.compile(r"^\d{1,12}$")


class AssetClassifier:
    """
    Classification of files and URLs into asset types and categories.

    Args:
        catalogue_path: Path to asset_types.yml; defaults to settings.asset_types_config
    """

    def __init__(self, catalogue_path: Optional[str] = None):
        self.catalogue_path = catalogue_path or settings.asset_types_config

    @cached_property
    def catalogue(self) -> AssetTypesConfig:
        catalogue = AssetTypesConfig.from_yaml(self.catalogue_path)
        logger.debug(f"Loaded {len(catalogue.asset_types)} asset types from {self.catalogue_path}")
        return catalogue

    # -------- Type mapping --------
    def map_mime_to_asset_type(self, mime: Optional[str]) -> str:
        return MIME_TO_ASSET_TYPE.get((mime or "").strip().lower(), "other")

    def extension_to_mime(self, extension: str) -> str:
        return EXTENSION_TO_MIME.get(extension.lower().lstrip("."), "application/octet-stream")

    def is_known_extension(self, extension: str) -> bool:
        return extension.lower().lstrip(".") in KNOWN_EXTENSIONS

    def get_category(self, asset_type: str) -> str:
        return self.catalogue.category_for(asset_type)

    def get_label(self, asset_type: str) -> str:
        return self.catalogue.label_for(asset_type)

    def match_url_to_asset_type(self, url: str) -> str:
        return self.catalogue.match_url(url) or "other"

    # -------- URLs --------
    def extract_urls(self, text: str) -> List[str]:
        urls: List[str] = []
        for url in URL_RE.findall(text or ""):
            if url not in urls:
                urls.append(url)
        return urls

    def normalize_video_url(self, url: Optional[str]) -> Optional[Dict[str, str]]:
        """
        Canonical URL of a YouTube or Vimeo video.

        Returns:
            {"url": canonical_url, "video_id": id, "platform": "youtube" | "vimeo"}
            or None when the value is not a recognizable video reference.
        """
        url = (url or "").strip()
        if not url:
            return None

        for pattern in _YOUTUBE_PATTERNS:
            match = pattern.search(url)
            if match:
                return self._youtube(match.group(1))

        for pattern in _VIMEO_PATTERNS:
            match = pattern.search(url)
            if match:
                return self._vimeo(match.group(1))

        if _YOUTUBE_ID_RE.match(url):
            return self._youtube(url)
        if _VIMEO_ID_RE.match(url):
            return self._vimeo(url)
        return None

    @staticmethod
    def _youtube(video_id: str) -> Dict[str, str]:
        return {
            "url": f"https://www.youtube.com/watch?v={video_id}",
            "video_id": video_id,
            "platform": "youtube",
        }

    @staticmethod
    def _vimeo(video_id: str) -> Dict[str, str]:
        return {"url": f"https://vimeo.com/{video_id}", "video_id": video_id, "platform": "vimeo"}

    # -------- HTML --------
    def extract_references(self, html: str) -> List[Tuple[str, EmbedMethod]]:
        """
        Find file/resource references in HTML content.

        Returns (url, embed_method) pairs in document order; each pair appears once.
        """
        soup = BeautifulSoup(html or "", "html.parser")
        references: List[Tuple[str, EmbedMethod]] = []

        def add(url: Optional[str], method: EmbedMethod) -> None:
            url = (url or "").strip()
            if url and (url, method) not in references:
                references.append((url, method))

        for iframe in soup.find_all("iframe", src=True):
            add(iframe["src"], EmbedMethod.INLINE_IFRAME)

        for tag_name, method in (("video", EmbedMethod.HTML5_VIDEO), ("audio", EmbedMethod.HTML5_AUDIO)):
            for element in soup.find_all(tag_name):
                add(element.get("src"), method)
                for source in element.find_all("source", src=True):
                    add(source["src"], method)

        for anchor in soup.find_all("a", href=True):
            href = anchor["href"]
            if href.startswith(("#", "javascript:", "mailto:", "tel:")):
                continue
            add(href, EmbedMethod.TEXT_LINK)

        for image in soup.find_all("img", src=True):
            add(image["src"], EmbedMethod.INLINE_IMAGE)

        for obj in soup.find_all("object", data=True):
            add(obj["data"], EmbedMethod.OBJECT_EMBED)

        for embed in soup.find_all("embed", src=True):
            add(embed["src"], EmbedMethod.EMBED_ELEMENT)

        for url in self.extract_urls(soup.get_text(" ")):
            add(url, EmbedMethod.TEXT_URL)

        return references


# Global classifier instance
asset_classifier = AssetClassifier()
