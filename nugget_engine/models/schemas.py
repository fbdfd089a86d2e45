"""Pydantic models for nugget-engine core entities."""

import hashlib
import re
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from nugget_engine.constants import EXCERPT_MAX_LENGTH, GALLERY_CAPTION_MAX_LENGTH


class Visibility(str, Enum):
    """Who can see a nugget."""
    PUBLIC = "public"
    PRIVATE = "private"


class MediaKind(str, Enum):
    """Kinds of media reference, in descending primary priority."""
    VIDEO_EMBED = "video-embed"
    IMAGE = "image"
    DOCUMENT = "document"
    LINK = "link"
    UNKNOWN = "unknown"

    @property
    def priority(self) -> int:
        return MEDIA_PRIORITY[self]


MEDIA_PRIORITY = {
    MediaKind.VIDEO_EMBED: 3,
    MediaKind.IMAGE: 2,
    MediaKind.DOCUMENT: 1,
    MediaKind.LINK: 0,
    MediaKind.UNKNOWN: 0,
}

# Kind names written by the first schema generation.
LEGACY_KIND_ALIASES = {
    "youtube": MediaKind.VIDEO_EMBED,
    "video": MediaKind.VIDEO_EMBED,
    "text": MediaKind.UNKNOWN,
}


class MediaOrigin(str, Enum):
    """Where a MediaRef was read from. Never written to output documents."""
    NEW_PRIMARY = "new-primary"
    NEW_SUPPORTING = "new-supporting"
    LEGACY_MEDIA = "legacy-media"
    LEGACY_IMAGE_LIST = "legacy-image-list"


class CardType(str, Enum):
    """Layout class of a rendered card."""
    HYBRID = "hybrid"
    MEDIA_ONLY = "media-only"


class TitleSource(str, Enum):
    """Whether the stored title was typed by the user or taken from a preview."""
    USER = "user"
    METADATA = "metadata"


# =============================================================================
# Identity Helpers
# =============================================================================


def url_key(url: str) -> str:
    """Comparison key for URLs: trimmed and case-folded."""
    return url.strip().lower()


def media_item_id(url: str) -> str:
    """Stable identity for a media item, derived from its URL key."""
    digest = hashlib.sha1(url_key(url).encode("utf-8")).hexdigest()
    return f"m_{digest[:12]}"


def clean_caption(value: Optional[str]) -> Optional[str]:
    """Collapse a gallery caption to one line of at most 80 characters."""
    if value is None:
        return None
    collapsed = re.sub(r"\s+", " ", value).strip()
    if not collapsed:
        return None
    return collapsed[:GALLERY_CAPTION_MAX_LENGTH].rstrip()


def coerce_media_kind(value: Any) -> Any:
    if isinstance(value, str) and value in LEGACY_KIND_ALIASES:
        return LEGACY_KIND_ALIASES[value]
    return value


# =============================================================================
# Media Models
# =============================================================================


class PreviewMetadata(BaseModel):
    """Link preview data, either fetched or synthesized."""

    url: str
    title: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    site_name: Optional[str] = None
    media_type: Optional[MediaKind] = None
    title_source: Optional[str] = Field(
        None, description="Provider the title was fetched from, e.g. youtube-oembed"
    )
    title_fetched_at: Optional[datetime] = None

    _coerce_media_type = field_validator("media_type", mode="before")(coerce_media_kind)

    @property
    def is_externally_sourced(self) -> bool:
        """True when the title came from an external provider."""
        return bool(self.title_source)

    @classmethod
    def minimal(cls, url: str, kind: MediaKind) -> "PreviewMetadata":
        """Smallest metadata downstream consumers can rely on."""
        return cls(
            url=url,
            image_url=url if kind == MediaKind.IMAGE else None,
            media_type=kind,
        )


class MediaRef(BaseModel):
    """A single piece of media before classification."""

    kind: MediaKind
    url: str
    thumbnail: Optional[str] = None
    preview_metadata: Optional[PreviewMetadata] = None
    origin: MediaOrigin = MediaOrigin.NEW_SUPPORTING
    item_id: Optional[str] = None
    aspect_ratio: Optional[str] = None
    show_in_gallery: Optional[bool] = None
    gallery_caption: Optional[str] = None

    _coerce_kind = field_validator("kind", mode="before")(coerce_media_kind)

    @field_validator("url")
    @classmethod
    def strip_url(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("media url must not be blank")
        return value

    @property
    def key(self) -> str:
        """Stable identity used to match display flags."""
        return self.item_id or media_item_id(self.url)


class DisplayFlag(BaseModel):
    """Per-item gallery settings supplied by the caller, keyed by identity.

    `gallery_caption=""` clears a caption; `None` leaves it alone.
    """

    item_id: Optional[str] = None
    url: Optional[str] = None
    show_in_gallery: Optional[bool] = None
    gallery_caption: Optional[str] = None

    @field_validator("gallery_caption")
    @classmethod
    def normalize_caption(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return clean_caption(value) or ""

    @model_validator(mode="after")
    def require_identity(self) -> "DisplayFlag":
        if not self.item_id and not (self.url and self.url.strip()):
            raise ValueError("display flag needs an item_id or a url")
        return self

    @property
    def key(self) -> str:
        return self.item_id or media_item_id(self.url or "")


class MediaItem(BaseModel):
    """Classified media as stored on a document."""

    id: str
    kind: MediaKind
    url: str
    thumbnail: Optional[str] = None
    preview_metadata: Optional[PreviewMetadata] = None
    aspect_ratio: Optional[str] = None
    show_in_gallery: bool = False
    gallery_caption: Optional[str] = Field(None, max_length=GALLERY_CAPTION_MAX_LENGTH)

    _coerce_kind = field_validator("kind", mode="before")(coerce_media_kind)
    _clean_caption = field_validator("gallery_caption", mode="before")(clean_caption)

    @model_validator(mode="before")
    @classmethod
    def assign_identity(cls, data: Any) -> Any:
        """Items stored before identities existed get one derived from the URL."""
        if isinstance(data, dict) and not data.get("id") and data.get("url"):
            data = {**data, "id": media_item_id(data["url"])}
        return data


class PrimaryMedia(MediaItem):
    """The single highest-priority media item. Shown in the gallery by default."""

    show_in_gallery: bool = True


class SupportingMediaItem(MediaItem):
    """Any non-primary media item. Hidden from the gallery by default."""

    show_in_gallery: bool = False


class LegacyMedia(BaseModel):
    """First-generation single `media` field, read but never written."""

    kind: MediaKind = Field(..., alias="type")
    url: str
    thumbnail_url: Optional[str] = None
    preview_metadata: Optional[PreviewMetadata] = None
    show_in_gallery: Optional[bool] = None
    gallery_caption: Optional[str] = None

    model_config = {"populate_by_name": True}

    _coerce_kind = field_validator("kind", mode="before")(coerce_media_kind)


# =============================================================================
# Submission
# =============================================================================


class RawSubmission(BaseModel):
    """User input for one create or edit action.

    `None` means "not provided": create treats it as empty, edit leaves the
    stored field untouched.
    """

    title: Optional[str] = None
    title_is_user_supplied: Optional[bool] = None
    content: Optional[str] = None
    tags: Optional[list[Optional[str]]] = None
    visibility: Optional[Visibility] = None
    urls: Optional[list[str]] = None
    uploaded_media: list[MediaRef] = Field(default_factory=list)
    display_flags: list[DisplayFlag] = Field(default_factory=list)
    deleted_image_urls: list[str] = Field(default_factory=list)
    allow_metadata_override: bool = False
    custom_created_at: Optional[datetime] = None
    is_admin: bool = False

    @property
    def carries_media(self) -> bool:
        """True when the submission says anything about which media exist."""
        return self.urls is not None or bool(self.uploaded_media)


# =============================================================================
# Documents
# =============================================================================


class ContentDocument(BaseModel):
    """Fields shared by created, persisted and updated content."""

    title: Optional[str] = None
    title_source: Optional[TitleSource] = None
    content: str = ""
    excerpt: str = ""
    read_time: int = Field(default=1, ge=1)
    tags: list[str] = Field(default_factory=list)
    visibility: Visibility = Visibility.PUBLIC
    primary_media: Optional[PrimaryMedia] = None
    supporting_media: list[SupportingMediaItem] = Field(default_factory=list)
    image_urls: list[str] = Field(default_factory=list)
    card_type: CardType = CardType.HYBRID
    custom_created_at: Optional[datetime] = None

    @field_validator("tags", "supporting_media", "image_urls", mode="before")
    @classmethod
    def null_list_is_empty(cls, value: Any) -> Any:
        """An explicit clear of a list field leaves an empty list."""
        return [] if value is None else value


class NormalizedContent(ContentDocument):
    """Output of create mode, ready to hand to the persistence collaborator."""

    tags: list[str] = Field(..., min_length=1)
    excerpt: str = Field(default="", max_length=EXCERPT_MAX_LENGTH)


class PersistedDocument(ContentDocument):
    """A stored document, possibly still carrying first-generation fields."""

    id: str
    media: Optional[LegacyMedia] = None

    model_config = {"extra": "ignore"}


class UpdatePayload(BaseModel):
    """Partial update for edit mode.

    A field absent from `model_fields_set` means "do not touch"; a field set
    to None means "clear". Construct it with only the fields that change.
    """

    title: Optional[str] = None
    title_source: Optional[TitleSource] = None
    content: Optional[str] = None
    excerpt: Optional[str] = None
    read_time: Optional[int] = None
    tags: Optional[list[str]] = None
    visibility: Optional[Visibility] = None
    primary_media: Optional[PrimaryMedia] = None
    supporting_media: Optional[list[SupportingMediaItem]] = None
    image_urls: Optional[list[str]] = None
    card_type: Optional[CardType] = None
    custom_created_at: Optional[datetime] = None
    # Legacy single-media field; only ever set to None once migrated
    media: Optional[LegacyMedia] = None

    model_config = {"extra": "forbid"}

    @property
    def is_empty(self) -> bool:
        return not self.model_fields_set

    @property
    def cleared_fields(self) -> set[str]:
        """Fields explicitly set to None."""
        return {name for name in self.model_fields_set if getattr(self, name) is None}

    def to_update_dict(self, mode: str = "json") -> dict[str, Any]:
        """Serialize present fields only, keeping explicit nulls."""
        return self.model_dump(mode=mode, include=set(self.model_fields_set))


# =============================================================================
# Diagnostics & Results
# =============================================================================


class DiagnosticCode(str, Enum):
    """Non-fatal conditions reported alongside a successful result."""
    ENRICHMENT_DEGRADED = "enrichment_degraded"
    DUPLICATE_IMAGE_REMOVED = "duplicate_image_removed"
    NEAR_DUPLICATE_IMAGE = "near_duplicate_image"
    METADATA_PRESERVED_OVERRIDE = "metadata_preserved_override"
    TAGS_SENTINEL_SUBSTITUTED = "tags_sentinel_substituted"
    IMAGE_RELOCATED = "image_relocated"
    IMAGE_EXPLICITLY_DELETED = "image_explicitly_deleted"
    PRIMARY_MEDIA_CLEARED = "primary_media_cleared"
    IMAGES_REDUCED = "images_reduced"
    CUSTOM_DATE_IGNORED = "custom_date_ignored"


class Diagnostic(BaseModel):
    """One structured diagnostic event."""

    code: DiagnosticCode
    detail: dict[str, Any] = Field(default_factory=dict)


class CreateResult(BaseModel):
    """Create-mode output plus diagnostics."""

    content: NormalizedContent
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    @property
    def codes(self) -> list[DiagnosticCode]:
        return [d.code for d in self.diagnostics]


class EditResult(BaseModel):
    """Edit-mode output plus diagnostics."""

    content_id: str
    payload: UpdatePayload
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    @property
    def codes(self) -> list[DiagnosticCode]:
        return [d.code for d in self.diagnostics]
