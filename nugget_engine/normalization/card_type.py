"""
Card type classification.

A card is either `hybrid` (media block plus a separate, truncatable text
block) or `media-only` (text is a short caption overlaid on the media).
The decision depends on five signals and nothing else; in particular it
never looks at what the media shows.
"""

from typing import Union

from nugget_engine.constants import LINE_COUNT_THRESHOLD, TEXT_LENGTH_THRESHOLD
from nugget_engine.models.schemas import (
    CardType,
    ContentDocument,
    PersistedDocument,
    TitleSource,
)
from nugget_engine.normalization.media import collect_all_image_urls
from nugget_engine.normalization.text import line_count, text_length


def classify_card_type(
    has_media: bool,
    text_length: int,
    line_count: int,
    has_user_title: bool,
    is_multi_image: bool,
) -> CardType:
    """
    Decision table, evaluated top to bottom, first match wins.

    1. No media -> hybrid
    2. Text over either threshold -> hybrid (text that needs truncation is
       never media-only)
    3. Multiple images and long text -> hybrid
    4. Minimal text and no user title -> media-only
    5. Otherwise -> hybrid
    """
    long_text = text_length > TEXT_LENGTH_THRESHOLD or line_count > LINE_COUNT_THRESHOLD

    if not has_media:
        return CardType.HYBRID
    if long_text:
        return CardType.HYBRID
    # Multi-image gallery with long text
    if is_multi_image and long_text:
        return CardType.HYBRID
    if not has_user_title:
        return CardType.MEDIA_ONLY
    return CardType.HYBRID


def has_user_title(doc: Union[ContentDocument, PersistedDocument]) -> bool:
    """Only a typed title counts; a title taken from link metadata never does."""
    return bool(doc.title and doc.title.strip()) and doc.title_source == TitleSource.USER


def card_type_for(doc: Union[ContentDocument, PersistedDocument]) -> CardType:
    """Derive the five signals from a document and classify it."""
    images = collect_all_image_urls(doc)
    has_media = bool(
        doc.primary_media
        or doc.supporting_media
        or images
        or getattr(doc, "media", None)
    )
    return classify_card_type(
        has_media=has_media,
        text_length=text_length(doc.content),
        line_count=line_count(doc.content),
        has_user_title=has_user_title(doc),
        is_multi_image=len(images) > 1,
    )
