"""
URL heuristics for media detection.

Everything here looks only at the URL string; nothing is fetched. The same
rules decide whether a pasted URL is an image (rendered directly, never
enriched) or a link (candidate for preview enrichment).
"""

import re
from typing import Iterable, Optional
from urllib.parse import urlsplit

from nugget_engine.models.schemas import MediaKind, url_key

__all__ = [
    "canonical_image_url",
    "detect_media_kind",
    "extract_youtube_video_id",
    "is_http_url",
    "is_image_url",
    "is_youtube_url",
    "split_urls",
    "url_key",
    "youtube_thumbnail_url",
]


# =============================================================================
# Patterns
# =============================================================================

IMAGE_EXTENSION_RE = re.compile(r"\.(jpg|jpeg|png|gif|webp|svg)$", re.IGNORECASE)
VIDEO_EXTENSION_RE = re.compile(r"\.(mp4|webm|ogg)$", re.IGNORECASE)
DOCUMENT_EXTENSION_RE = re.compile(r"\.(pdf|doc|docx|xls|xlsx|ppt|pptx)$", re.IGNORECASE)

FORMAT_QUERY_RE = re.compile(r"[?&]format=(jpg|jpeg|png|gif|webp)", re.IGNORECASE)
MEDIA_PATH_RE = re.compile(r"/(media|image|photo|pic|img)/", re.IGNORECASE)

YOUTUBE_ID_RE = re.compile(
    r"(?:youtu\.be/|youtube\.com/(?:watch\?(?:.*&)?v=|embed/|v/|shorts/))([A-Za-z0-9_-]{11})"
)

# Hosts that serve nothing but images.
IMAGE_HOSTS = frozenset({"i.redd.it", "preview.redd.it", "i.imgur.com"})

# Host fragments of generic image CDNs; also serve HTML, so the path is checked too.
CDN_HOST_MARKERS = ("images.ctfassets.net", "thumbs.", "cdn.", "img.", "image.")
CDN_IMAGE_QUERY_MARKERS = ("fm=", "q=", "format=")
NON_IMAGE_PATH_SUFFIXES = (".html", ".php", "/")

YOUTUBE_THUMBNAIL_TEMPLATE = "https://img.youtube.com/vi/{video_id}/hqdefault.jpg"


# =============================================================================
# Detection
# =============================================================================


def is_http_url(url: str) -> bool:
    return url.strip().lower().startswith(("http://", "https://"))


def _split(url: str) -> tuple[str, str]:
    """Return (hostname, path), both lower-cased; empty strings if unparseable."""
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return "", ""
    return (parts.hostname or "").lower(), parts.path.lower()


def is_image_url(url: Optional[str]) -> bool:
    """Check whether a URL points at an image, from extension and host alone."""
    if not url or not url.strip():
        return False
    url = url.strip()
    hostname, path = _split(url)

    if IMAGE_EXTENSION_RE.search(url) or IMAGE_EXTENSION_RE.search(path):
        return True

    if not hostname:
        return False

    # Social media image CDNs
    if hostname == "pbs.twimg.com" and path.startswith("/media/"):
        return True
    if "media.licdn.com" in hostname and "/image/" in path:
        return True
    if hostname in IMAGE_HOSTS:
        return True

    if any(marker in hostname for marker in CDN_HOST_MARKERS):
        if any(marker in url for marker in CDN_IMAGE_QUERY_MARKERS):
            return True
        if not path.endswith(NON_IMAGE_PATH_SUFFIXES):
            return True

    return bool(FORMAT_QUERY_RE.search(url) and MEDIA_PATH_RE.search(path))


def is_youtube_url(url: str) -> bool:
    hostname, _ = _split(url)
    return hostname.endswith("youtube.com") or hostname.endswith("youtu.be")


def detect_media_kind(url: str) -> MediaKind:
    """Classify a URL into a MediaKind.

    Checks run in order: YouTube, image, direct video file, document,
    generic web link.
    """
    if not url or not url.strip():
        return MediaKind.UNKNOWN

    _, path = _split(url)
    if is_youtube_url(url):
        return MediaKind.VIDEO_EMBED
    if is_image_url(url):
        return MediaKind.IMAGE
    if VIDEO_EXTENSION_RE.search(path):
        return MediaKind.VIDEO_EMBED
    if DOCUMENT_EXTENSION_RE.search(path):
        return MediaKind.DOCUMENT
    if is_http_url(url):
        return MediaKind.LINK
    return MediaKind.UNKNOWN


# =============================================================================
# YouTube
# =============================================================================


def extract_youtube_video_id(url: Optional[str]) -> Optional[str]:
    """Pull the 11-character video id out of any common YouTube URL shape."""
    if not url:
        return None
    match = YOUTUBE_ID_RE.search(url.strip())
    return match.group(1) if match else None


def youtube_thumbnail_url(video_id: str) -> str:
    return YOUTUBE_THUMBNAIL_TEMPLATE.format(video_id=video_id)


# =============================================================================
# Keys & Splitting
# =============================================================================


def canonical_image_url(url: str) -> str:
    """Scheme, host and path, lower-cased, without query or fragment.

    Used only to spot near-duplicates such as the same CDN image requested
    at two sizes. Never used to decide equality.
    """
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return url_key(url)
    if not parts.netloc:
        return url_key(url).split("?", 1)[0].split("#", 1)[0]
    return f"{parts.scheme}://{parts.netloc}{parts.path}".lower()


def split_urls(urls: Optional[Iterable[str]]) -> tuple[list[str], list[str]]:
    """Split submitted URLs into (image_urls, link_urls), trimmed, blanks dropped."""
    images: list[str] = []
    links: list[str] = []
    for raw in urls or ():
        if not isinstance(raw, str) or not raw.strip():
            continue
        url = raw.strip()
        (images if is_image_url(url) else links).append(url)
    return images, links
