"""
Data Models.

Pydantic models shared by every stage of normalization:

- Submission input: RawSubmission, MediaRef, DisplayFlag
- Stored media: PrimaryMedia, SupportingMediaItem, LegacyMedia
- Documents: NormalizedContent (create), PersistedDocument (stored),
  UpdatePayload (edit, presence-tracked)
- Results: CreateResult, EditResult, Diagnostic

Example:
    from nugget_engine.models import RawSubmission

    submission = RawSubmission(
        content="short",
        urls=["https://example.com/a.jpg"],
        tags=["x"],
    )
"""

from nugget_engine.models.schemas import (
    CardType,
    ContentDocument,
    CreateResult,
    Diagnostic,
    DiagnosticCode,
    DisplayFlag,
    EditResult,
    LegacyMedia,
    MediaItem,
    MediaKind,
    MediaOrigin,
    MediaRef,
    MEDIA_PRIORITY,
    NormalizedContent,
    PersistedDocument,
    PreviewMetadata,
    PrimaryMedia,
    RawSubmission,
    SupportingMediaItem,
    TitleSource,
    UpdatePayload,
    Visibility,
    clean_caption,
    media_item_id,
    url_key,
)

__all__ = [
    "CardType",
    "ContentDocument",
    "CreateResult",
    "Diagnostic",
    "DiagnosticCode",
    "DisplayFlag",
    "EditResult",
    "LegacyMedia",
    "MediaItem",
    "MediaKind",
    "MediaOrigin",
    "MediaRef",
    "MEDIA_PRIORITY",
    "NormalizedContent",
    "PersistedDocument",
    "PreviewMetadata",
    "PrimaryMedia",
    "RawSubmission",
    "SupportingMediaItem",
    "TitleSource",
    "UpdatePayload",
    "Visibility",
    "clean_caption",
    "media_item_id",
    "url_key",
]
