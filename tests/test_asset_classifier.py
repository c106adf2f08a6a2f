"""
Unit tests for AssetClassifier and the asset type catalogue.
"""

import pytest

from digital_asset_inventory.database.models import EmbedMethod
from digital_asset_inventory.models.config_models import AssetTypesConfig
from digital_asset_inventory.services.asset_classifier import AssetClassifier, asset_classifier


class TestTypeMapping:
    """Test MIME/extension/category mapping."""

    @pytest.mark.parametrize("mime,asset_type", [
        ("application/pdf", "pdf"),
        ("APPLICATION/PDF", "pdf"),
        ("application/vnd.openxmlformats-officedocument.wordprocessingml.document", "word"),
        ("video/quicktime", "mov"),
        ("application/zip", "compressed"),
        ("application/x-unknown", "other"),
        (None, "other"),
    ])
    def test_map_mime_to_asset_type(self, mime, asset_type):
        assert asset_classifier.map_mime_to_asset_type(mime) == asset_type

    def test_extension_to_mime(self):
        assert asset_classifier.extension_to_mime(".PDF") == "application/pdf"
        assert asset_classifier.extension_to_mime("xyz") == "application/octet-stream"
        assert asset_classifier.is_known_extension("docx")
        assert not asset_classifier.is_known_extension("php")

    @pytest.mark.parametrize("asset_type,category", [
        ("pdf", "Documents"),
        ("mp4", "Videos"),
        ("png", "Images"),
        ("mp3", "Audio"),
        ("compressed", "Other"),
        ("youtube", "Videos"),
        ("google_doc", "Documents"),
        ("not_a_type", "Unknown"),
    ])
    def test_get_category(self, asset_type, category):
        assert asset_classifier.get_category(asset_type) == category

    def test_labels(self):
        assert asset_classifier.get_label("google_doc") == "Google Doc"
        assert asset_classifier.get_label("not_a_type") == "not_a_type"


class TestExternalUrls:
    """Test URL pattern matching and video URL normalization."""

    @pytest.mark.parametrize("url,asset_type", [
        ("https://docs.google.com/document/d/abc/edit", "google_doc"),
        ("https://www.dropbox.com/s/abc/file.pdf", "dropbox"),
        ("https://youtu.be/dQw4w9WgXcQ", "youtube"),
        ("https://vimeo.com/123456", "vimeo"),
        ("https://example.com/about", "other"),
    ])
    def test_match_url_to_asset_type(self, url, asset_type):
        assert asset_classifier.match_url_to_asset_type(url) == asset_type

    @pytest.mark.parametrize("url", [
        "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
        "https://youtube.com/watch?feature=share&v=dQw4w9WgXcQ",
        "https://youtu.be/dQw4w9WgXcQ",
        "https://www.youtube.com/embed/dQw4w9WgXcQ?rel=0",
        "https://www.youtube.com/shorts/dQw4w9WgXcQ",
        "https://www.youtube-nocookie.com/embed/dQw4w9WgXcQ",
        "dQw4w9WgXcQ",
    ])
    def test_youtube_variants_normalize(self, url):
        assert asset_classifier.normalize_video_url(url) == {
            "url": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
            "video_id": "dQw4w9WgXcQ",
            "platform": "youtube",
        }

    def test_vimeo_variants_normalize(self):
        for url in ("https://vimeo.com/123456", "https://player.vimeo.com/video/123456?h=1", "123456"):
            result = asset_classifier.normalize_video_url(url)
            assert result["url"] == "https://vimeo.com/123456"
            assert result["platform"] == "vimeo"

    def test_non_video_urls(self):
        assert asset_classifier.normalize_video_url("https://example.com/watch") is None
        assert asset_classifier.normalize_video_url("") is None
        assert asset_classifier.normalize_video_url(None) is None


class TestExtractReferences:
    """Test reference extraction from HTML."""

    def test_embed_methods(self):
        html = """
            <p>See <a href="/sites/default/files/a.pdf">the report</a>
               or https://example.com/plain-link for details.</p>
            <a href="#top">Top</a> <a href="mailto:x@example.com">Mail</a>
            <img src="/sites/default/files/logo.png">
            <iframe src="https://www.youtube.com/embed/dQw4w9WgXcQ"></iframe>
            <video><source src="/sites/default/files/clip.mp4"></video>
            <audio src="/sites/default/files/talk.mp3"></audio>
            <object data="/sites/default/files/deck.pdf"></object>
            <embed src="/sites/default/files/movie.mov">
        """
        references = asset_classifier.extract_references(html)

        assert ("/sites/default/files/a.pdf", EmbedMethod.TEXT_LINK) in references
        assert ("/sites/default/files/logo.png", EmbedMethod.INLINE_IMAGE) in references
        assert ("https://www.youtube.com/embed/dQw4w9WgXcQ", EmbedMethod.INLINE_IFRAME) in references
        assert ("/sites/default/files/clip.mp4", EmbedMethod.HTML5_VIDEO) in references
        assert ("/sites/default/files/talk.mp3", EmbedMethod.HTML5_AUDIO) in references
        assert ("/sites/default/files/deck.pdf", EmbedMethod.OBJECT_EMBED) in references
        assert ("/sites/default/files/movie.mov", EmbedMethod.EMBED_ELEMENT) in references
        assert ("https://example.com/plain-link", EmbedMethod.TEXT_URL) in references
        assert not any(url.startswith(("#", "mailto:")) for url, _ in references)

    def test_duplicates_collapse(self):
        html = '<a href="/a.pdf">A</a><a href="/a.pdf">again</a>'
        assert asset_classifier.extract_references(html) == [("/a.pdf", EmbedMethod.TEXT_LINK)]

    def test_empty_content(self):
        assert asset_classifier.extract_references("") == []
        assert asset_classifier.extract_references(None) == []


class TestAssetTypesConfig:
    """Test loading the YAML catalogue."""

    def test_custom_catalogue(self, tmp_path):
        path = tmp_path / "types.yml"
        path.write_text(
            "asset_types:\n"
            "  pdf: {label: PDF, category: Documents}\n"
            "  panopto:\n"
            "    label: Panopto\n"
            "    category: Videos\n"
            "    url_patterns: [panopto.com]\n"
        )
        classifier = AssetClassifier(str(path))
        assert classifier.match_url_to_asset_type("https://uni.hosted.PANOPTO.com/v/1") == "panopto"
        assert classifier.get_category("panopto") == "Videos"
        assert classifier.get_category("mp4") == "Unknown"

    def test_missing_catalogue(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AssetTypesConfig.from_yaml(str(tmp_path / "missing.yml"))

    def test_unknown_keys_rejected(self, tmp_path):
        from pydantic import ValidationError

        path = tmp_path / "types.yml"
        path.write_text("asset_types:\n  pdf: {label: PDF, category: Documents, colour: red}\n")
        with pytest.raises(ValidationError):
            AssetTypesConfig.from_yaml(str(path))
