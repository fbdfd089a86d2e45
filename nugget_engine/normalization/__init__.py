"""
Content normalization.

Stages, composed by the pipeline:
- urls: media kind detection and URL helpers
- tags: case-insensitive tag dedup
- images: flat image list dedup for create and edit
- media: primary/supporting classification across schema generations
- text: excerpt and read time
- card_type: hybrid vs. media-only layout
- validation: pre-save checks
- pipeline: create and edit orchestration
"""

from nugget_engine.normalization.urls import (
    canonical_image_url,
    detect_media_kind,
    is_image_url,
    split_urls,
)
from nugget_engine.normalization.tags import (
    normalize_tags,
    normalize_tags_or_sentinel,
    validate_tags_not_empty,
)
from nugget_engine.normalization.images import (
    DedupResult,
    dedupe_for_create,
    dedupe_for_edit,
    detect_duplicate_images,
)
from nugget_engine.normalization.media import (
    MediaClassification,
    classify,
    collect_all_image_urls,
    extract_all_urls,
    media_refs_from_document,
    resolve_thumbnail,
    submission_from_document,
)
from nugget_engine.normalization.text import derive_excerpt, estimate_read_time
from nugget_engine.normalization.card_type import card_type_for, classify_card_type
from nugget_engine.normalization.validation import (
    PreSaveValidationResult,
    format_validation_result,
    validate_before_save,
)
from nugget_engine.normalization.pipeline import (
    ContentNormalizer,
    normalize_for_create,
    normalize_for_edit,
)

__all__ = [
    # URLs
    "canonical_image_url",
    "detect_media_kind",
    "is_image_url",
    "split_urls",
    # Tags
    "normalize_tags",
    "normalize_tags_or_sentinel",
    "validate_tags_not_empty",
    # Images
    "DedupResult",
    "dedupe_for_create",
    "dedupe_for_edit",
    "detect_duplicate_images",
    # Media
    "MediaClassification",
    "classify",
    "collect_all_image_urls",
    "extract_all_urls",
    "media_refs_from_document",
    "resolve_thumbnail",
    "submission_from_document",
    # Text and layout
    "derive_excerpt",
    "estimate_read_time",
    "card_type_for",
    "classify_card_type",
    # Validation
    "PreSaveValidationResult",
    "format_validation_result",
    "validate_before_save",
    # Pipeline
    "ContentNormalizer",
    "normalize_for_create",
    "normalize_for_edit",
]
