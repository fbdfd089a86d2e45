"""
Media classification.

Turns a bag of heterogeneous media references into one primary item and a
list of supporting items. Also owns the ingestion adapter that reads both
stored schema generations, so nothing downstream ever branches on
"legacy vs. new".

Stored schema generations:
- new: primary_media + supporting_media
- legacy: single `media` field + flat `image_urls` list

Primary selection is by MediaKind priority
(video-embed > image > document > link/unknown), ties broken by input order.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

import structlog

from nugget_engine.models.schemas import (
    ContentDocument,
    DisplayFlag,
    MediaItem,
    MediaKind,
    MediaOrigin,
    MediaRef,
    PersistedDocument,
    PreviewMetadata,
    PrimaryMedia,
    RawSubmission,
    SupportingMediaItem,
    TitleSource,
    media_item_id,
    url_key,
)
from nugget_engine.normalization.urls import (
    canonical_image_url,
    detect_media_kind,
    extract_youtube_video_id,
    youtube_thumbnail_url,
)

logger = structlog.get_logger(__name__)

DocumentLike = Union[ContentDocument, PersistedDocument]


@dataclass
class MediaClassification:
    """Result of classify()."""

    primary: Optional[PrimaryMedia] = None
    supporting: list[SupportingMediaItem] = field(default_factory=list)
    # The ref the primary was built from, before metadata synthesis.
    primary_ref: Optional[MediaRef] = None

    @property
    def items(self) -> list[MediaItem]:
        head: list[MediaItem] = [self.primary] if self.primary else []
        return head + list(self.supporting)


@dataclass(frozen=True)
class ExtractedUrl:
    """A URL found somewhere on a document, with where it was found."""

    url: str
    source: str
    source_label: str
    index: Optional[int] = None


# =============================================================================
# Ingestion
# =============================================================================


def media_ref_from_url(url: str, origin: MediaOrigin = MediaOrigin.NEW_SUPPORTING) -> MediaRef:
    return MediaRef(kind=detect_media_kind(url), url=url, origin=origin)


def media_refs_from_urls(urls: Optional[Iterable[str]]) -> list[MediaRef]:
    """Refs for freshly submitted URLs, in order, blanks dropped."""
    return [
        media_ref_from_url(u.strip())
        for u in urls or ()
        if isinstance(u, str) and u.strip()
    ]


def _ref_from_item(item: MediaItem, origin: MediaOrigin) -> MediaRef:
    return MediaRef(
        kind=item.kind,
        url=item.url,
        thumbnail=item.thumbnail,
        preview_metadata=item.preview_metadata,
        origin=origin,
        item_id=item.id,
        aspect_ratio=item.aspect_ratio,
        show_in_gallery=item.show_in_gallery,
        gallery_caption=item.gallery_caption,
    )


def media_refs_from_document(doc: DocumentLike) -> list[MediaRef]:
    """
    Read every media reference a stored document carries.

    Emission order: primary_media, supporting_media, legacy `media`, flat
    `image_urls`. References repeating an earlier URL are skipped, so each
    URL appears once under its highest-ranking source.
    """
    refs: list[MediaRef] = []
    seen: set[str] = set()

    def add(ref: MediaRef) -> None:
        key = url_key(ref.url)
        if key in seen:
            return
        seen.add(key)
        refs.append(ref)

    if doc.primary_media and doc.primary_media.url.strip():
        add(_ref_from_item(doc.primary_media, MediaOrigin.NEW_PRIMARY))

    for item in doc.supporting_media:
        if item.url.strip():
            add(_ref_from_item(item, MediaOrigin.NEW_SUPPORTING))

    legacy = getattr(doc, "media", None)
    if legacy is not None and legacy.url.strip():
        add(
            MediaRef(
                kind=legacy.kind,
                url=legacy.url,
                thumbnail=legacy.thumbnail_url,
                preview_metadata=legacy.preview_metadata,
                origin=MediaOrigin.LEGACY_MEDIA,
                show_in_gallery=legacy.show_in_gallery,
                gallery_caption=legacy.gallery_caption,
            )
        )

    for url in doc.image_urls:
        if isinstance(url, str) and url.strip():
            add(MediaRef(kind=MediaKind.IMAGE, url=url, origin=MediaOrigin.LEGACY_IMAGE_LIST))

    return refs


def submission_from_document(doc: DocumentLike) -> RawSubmission:
    """
    Build the submission a client sends when re-saving a document unchanged.

    Display flags are keyed by item id so gallery settings survive.
    """
    refs = media_refs_from_document(doc)
    flags = [
        DisplayFlag(
            item_id=item.id,
            show_in_gallery=item.show_in_gallery,
            gallery_caption=item.gallery_caption,
        )
        for item in ([doc.primary_media] if doc.primary_media else []) + list(doc.supporting_media)
    ]

    title_is_user_supplied = None
    if doc.title_source is not None:
        title_is_user_supplied = doc.title_source == TitleSource.USER

    return RawSubmission(
        title=doc.title,
        title_is_user_supplied=title_is_user_supplied,
        content=doc.content,
        tags=list(doc.tags),
        visibility=doc.visibility,
        urls=[ref.url for ref in refs],
        display_flags=flags,
    )


# =============================================================================
# Classification
# =============================================================================


def resolve_primary_thumbnail(kind: MediaKind, url: str) -> Optional[str]:
    """Thumbnail derivable from the URL alone, or None."""
    if kind == MediaKind.VIDEO_EMBED:
        video_id = extract_youtube_video_id(url)
        return youtube_thumbnail_url(video_id) if video_id else None
    if kind == MediaKind.IMAGE:
        return url
    return None


def index_flags(flags: Iterable[DisplayFlag]) -> dict[str, DisplayFlag]:
    """Key display flags by stable id. A later flag for the same item wins."""
    return {flag.key: flag for flag in flags}


def flag_for(flags_by_key: dict[str, DisplayFlag], ref: MediaRef) -> Optional[DisplayFlag]:
    """Find the flag for a ref by its id, falling back to the id its URL derives."""
    return flags_by_key.get(ref.key) or flags_by_key.get(media_item_id(ref.url))


def _display_settings(
    ref: MediaRef,
    flag: Optional[DisplayFlag],
    default_show: bool,
) -> tuple[bool, Optional[str]]:
    show = ref.show_in_gallery if ref.show_in_gallery is not None else default_show
    caption = ref.gallery_caption
    if flag is not None:
        if flag.show_in_gallery is not None:
            show = flag.show_in_gallery
        if flag.gallery_caption is not None:
            caption = flag.gallery_caption or None
    return show, caption


def apply_display_flag(item: MediaItem, flag: Optional[DisplayFlag]) -> MediaItem:
    """Apply a caller flag to an already-classified item, returning the same
    object when nothing changes."""
    if flag is None:
        return item
    changes: dict = {}
    if flag.show_in_gallery is not None and flag.show_in_gallery != item.show_in_gallery:
        changes["show_in_gallery"] = flag.show_in_gallery
    if flag.gallery_caption is not None:
        caption = flag.gallery_caption or None
        if caption != item.gallery_caption:
            changes["gallery_caption"] = caption
    return item.model_copy(update=changes) if changes else item


def build_primary(ref: MediaRef, flag: Optional[DisplayFlag] = None) -> PrimaryMedia:
    show, caption = _display_settings(ref, flag, default_show=True)
    return PrimaryMedia(
        id=ref.key,
        kind=ref.kind,
        url=ref.url,
        thumbnail=ref.thumbnail or resolve_primary_thumbnail(ref.kind, ref.url),
        preview_metadata=ref.preview_metadata or PreviewMetadata.minimal(ref.url, ref.kind),
        aspect_ratio=ref.aspect_ratio,
        show_in_gallery=show,
        gallery_caption=caption,
    )


def build_supporting(ref: MediaRef, flag: Optional[DisplayFlag] = None) -> SupportingMediaItem:
    show, caption = _display_settings(ref, flag, default_show=False)
    return SupportingMediaItem(
        id=ref.key,
        kind=ref.kind,
        url=ref.url,
        thumbnail=ref.thumbnail,
        preview_metadata=ref.preview_metadata or PreviewMetadata.minimal(ref.url, ref.kind),
        aspect_ratio=ref.aspect_ratio,
        show_in_gallery=show,
        gallery_caption=caption,
    )


def unique_refs(refs: Iterable[MediaRef]) -> list[MediaRef]:
    """Drop refs whose URL key was already seen; the first occurrence wins."""
    seen: set[str] = set()
    unique: list[MediaRef] = []
    for ref in refs:
        key = url_key(ref.url)
        if key in seen:
            continue
        seen.add(key)
        unique.append(ref)
    return unique


def classify(
    refs: Iterable[MediaRef],
    flags: Iterable[DisplayFlag] = (),
) -> MediaClassification:
    """
    Select one primary and bin the rest as supporting.

    Args:
        refs: Media references in input order.
        flags: Caller display flags, matched by stable id.

    Every item leaves with preview_metadata set. A primary without a
    thumbnail gets one derived from its URL here; it is never re-derived
    once stored.
    """
    candidates = unique_refs(refs)
    if not candidates:
        return MediaClassification()

    primary_index = 0
    for index, ref in enumerate(candidates):
        if ref.kind.priority > candidates[primary_index].kind.priority:
            primary_index = index

    flags_by_key = index_flags(flags)
    primary_ref = candidates[primary_index]
    primary = build_primary(primary_ref, flag_for(flags_by_key, primary_ref))
    supporting = [
        build_supporting(ref, flag_for(flags_by_key, ref))
        for index, ref in enumerate(candidates)
        if index != primary_index
    ]

    logger.debug(
        "media_classified",
        primary_kind=primary.kind.value,
        supporting_count=len(supporting),
    )
    return MediaClassification(primary=primary, supporting=supporting, primary_ref=primary_ref)


def merge_preview_metadata(
    stored: Optional[PreviewMetadata],
    incoming: Optional[PreviewMetadata],
    allow_override: bool = False,
) -> tuple[Optional[PreviewMetadata], bool]:
    """
    Decide which preview metadata an existing item keeps.

    Returns:
        (metadata, blocked) where blocked is True when incoming metadata was
        refused because the stored copy came from an external provider.
    """
    if incoming is None or incoming == stored:
        return stored, False
    if stored is not None and stored.is_externally_sourced and not allow_override:
        return stored, True
    return incoming, False


# =============================================================================
# Document Queries
# =============================================================================


def _effective_primary(doc: DocumentLike) -> Optional[tuple[MediaKind, str, Optional[str]]]:
    """(kind, url, explicit thumbnail) of the primary, falling back to legacy media."""
    if doc.primary_media is not None:
        return doc.primary_media.kind, doc.primary_media.url, doc.primary_media.thumbnail
    legacy = getattr(doc, "media", None)
    if legacy is not None:
        return legacy.kind, legacy.url, legacy.thumbnail_url
    return None


def resolve_thumbnail(doc: DocumentLike) -> Optional[str]:
    """
    Resolve the card thumbnail.

    Order: explicit primary thumbnail, derived YouTube thumbnail, primary URL
    for image primaries, first image among legacy media and the flat list.
    """
    primary = _effective_primary(doc)
    if primary is not None:
        kind, url, thumbnail = primary
        if thumbnail:
            return thumbnail
        derived = resolve_primary_thumbnail(kind, url)
        if derived:
            return derived

    legacy = getattr(doc, "media", None)
    if legacy is not None and legacy.kind == MediaKind.IMAGE:
        return legacy.url
    for url in doc.image_urls:
        if isinstance(url, str) and url.strip():
            return url.strip()
    return None


def collect_all_image_urls(doc: DocumentLike) -> list[str]:
    """Every image URL on a document across both schema generations, deduplicated."""
    candidates: list[str] = []
    if doc.primary_media is not None and doc.primary_media.kind == MediaKind.IMAGE:
        candidates.append(doc.primary_media.url)
    candidates.extend(item.url for item in doc.supporting_media if item.kind == MediaKind.IMAGE)
    legacy = getattr(doc, "media", None)
    if legacy is not None and legacy.kind == MediaKind.IMAGE:
        candidates.append(legacy.url)
    candidates.extend(doc.image_urls)

    seen: dict[str, str] = {}
    for url in candidates:
        if isinstance(url, str) and url.strip():
            seen.setdefault(url_key(url), url.strip())
    return list(seen.values())


_SOURCE_LABELS = {
    "primary_media": "Primary Media",
    "supporting_media": "Supporting Media #{n}",
    "media": "Media URL",
    "media.preview_metadata": "Preview Metadata",
    "image_urls": "Image #{n}",
}


def extract_all_urls(doc: Optional[DocumentLike]) -> list[ExtractedUrl]:
    """
    Every URL a document references, for "detected links" style listings.

    Deduplicated by canonical URL, so query-string variants collapse into
    their first occurrence.
    """
    if doc is None:
        return []

    found: list[ExtractedUrl] = []
    seen: set[str] = set()

    def add(url: Optional[str], source: str, index: Optional[int] = None) -> None:
        if not url or not url.strip():
            return
        url = url.strip()
        canonical = canonical_image_url(url)
        if canonical in seen:
            return
        seen.add(canonical)
        label = _SOURCE_LABELS[source].format(n=(index or 0) + 1)
        found.append(ExtractedUrl(url=url, source=source, source_label=label, index=index))

    if doc.primary_media is not None:
        add(doc.primary_media.url, "primary_media")
    for index, item in enumerate(doc.supporting_media):
        add(item.url, "supporting_media", index)
    legacy = getattr(doc, "media", None)
    if legacy is not None:
        add(legacy.url, "media")
        if legacy.preview_metadata is not None:
            add(legacy.preview_metadata.url, "media.preview_metadata")
    for index, url in enumerate(doc.image_urls):
        add(url, "image_urls", index)

    return found


__all__ = [
    "ExtractedUrl",
    "MediaClassification",
    "apply_display_flag",
    "build_primary",
    "build_supporting",
    "classify",
    "collect_all_image_urls",
    "extract_all_urls",
    "flag_for",
    "index_flags",
    "media_item_id",
    "media_ref_from_url",
    "media_refs_from_document",
    "media_refs_from_urls",
    "merge_preview_metadata",
    "resolve_primary_thumbnail",
    "resolve_thumbnail",
    "submission_from_document",
    "unique_refs",
]
