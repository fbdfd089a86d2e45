"""Unit tests for URL heuristics."""

import pytest

from nugget_engine.models.schemas import MediaKind
from nugget_engine.normalization.urls import (
    canonical_image_url,
    detect_media_kind,
    extract_youtube_video_id,
    is_image_url,
    split_urls,
    youtube_thumbnail_url,
)


class TestIsImageUrl:
    """Tests for image detection."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://example.com/a.png",
            "https://example.com/a.JPEG",
            "https://pbs.twimg.com/media/abc123?format=jpg&name=large",
            "https://media.licdn.com/dms/image/v2/abc",
            "https://i.redd.it/xyz",
            "https://i.imgur.com/xyz",
            "https://images.ctfassets.net/space/asset?fm=webp",
            "https://example.com/media/123?format=png",
        ],
    )
    def test_detects_images(self, url):
        """Extensions, image hosts and CDN patterns count as images."""
        assert is_image_url(url) is True

    @pytest.mark.parametrize(
        "url",
        [
            "https://example.com/articles/launch",
            "https://cdn.example.com/page.html",
            "",
            None,
        ],
    )
    def test_rejects_non_images(self, url):
        """Pages, CDN HTML and blanks are not images."""
        assert is_image_url(url) is False


class TestDetectMediaKind:
    """Tests for detect_media_kind."""

    @pytest.mark.parametrize(
        "url,kind",
        [
            ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", MediaKind.VIDEO_EMBED),
            ("https://youtu.be/dQw4w9WgXcQ", MediaKind.VIDEO_EMBED),
            ("https://example.com/a.png", MediaKind.IMAGE),
            ("https://example.com/clip.mp4", MediaKind.VIDEO_EMBED),
            ("https://example.com/report.pdf", MediaKind.DOCUMENT),
            ("https://example.com/articles/launch", MediaKind.LINK),
            ("not a url", MediaKind.UNKNOWN),
        ],
    )
    def test_kinds(self, url, kind):
        """Each URL shape maps onto its kind."""
        assert detect_media_kind(url) == kind


class TestYouTube:
    """Tests for YouTube helpers."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
            "https://www.youtube.com/watch?feature=share&v=dQw4w9WgXcQ",
            "https://youtu.be/dQw4w9WgXcQ?si=tracking",
            "https://www.youtube.com/embed/dQw4w9WgXcQ",
            "https://www.youtube.com/shorts/dQw4w9WgXcQ",
        ],
    )
    def test_extracts_video_id(self, url):
        """All common URL shapes yield the same id."""
        assert extract_youtube_video_id(url) == "dQw4w9WgXcQ"

    def test_no_id_in_channel_url(self):
        """Channel pages carry no video id."""
        assert extract_youtube_video_id("https://www.youtube.com/@channel") is None

    def test_thumbnail_url(self):
        """Thumbnails come from the img.youtube.com template."""
        assert youtube_thumbnail_url("abc") == "https://img.youtube.com/vi/abc/hqdefault.jpg"


class TestKeysAndSplitting:
    """Tests for canonical_image_url and split_urls."""

    def test_canonical_drops_query_and_case(self):
        """Size variants of one image share a canonical URL."""
        assert canonical_image_url("https://CDN.example.com/A.png?w=100") == (
            canonical_image_url("https://cdn.example.com/a.png?w=800")
        )

    def test_split_urls(self):
        """Images and links are split, trimmed, blanks dropped."""
        images, links = split_urls(
            [" https://example.com/a.png ", "", "https://example.com/post", None]
        )

        assert images == ["https://example.com/a.png"]
        assert links == ["https://example.com/post"]

    def test_split_none(self):
        """None splits into two empty lists."""
        assert split_urls(None) == ([], [])
