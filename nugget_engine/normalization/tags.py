"""Tag normalization."""

from typing import Any, Iterable, Optional

import structlog

from nugget_engine.constants import SENTINEL_TAG
from nugget_engine.core.exceptions import EmptyTagSetError

logger = structlog.get_logger(__name__)


def _clean(tags: Optional[Iterable[Any]]) -> list[str]:
    seen: dict[str, str] = {}
    for tag in tags or ():
        if not isinstance(tag, str):
            continue
        trimmed = tag.strip()
        if not trimmed:
            continue
        # First occurrence keeps its casing
        seen.setdefault(trimmed.lower(), trimmed)
    return list(seen.values())


def normalize_tags(tags: Optional[Iterable[Any]]) -> list[str]:
    """
    Normalize raw labels into a canonical tag set.

    Drops non-strings and blank entries, trims, and removes case-insensitive
    duplicates while keeping the first occurrence's casing and the original
    order.

    Raises:
        EmptyTagSetError: If nothing is left. No fallback tag is injected.
    """
    raw = list(tags or ())
    normalized = _clean(raw)
    if not normalized:
        raise EmptyTagSetError(raw)
    return normalized


def normalize_tags_or_sentinel(tags: Optional[Iterable[Any]]) -> tuple[list[str], bool]:
    """
    Edit-mode variant of normalize_tags.

    A stored record must stay valid, so an empty result becomes the sentinel
    tag instead of an error.

    Returns:
        (tags, substituted) where substituted is True if the sentinel was used.
    """
    normalized = _clean(tags)
    if normalized:
        return normalized, False
    logger.debug("tags_empty_using_sentinel", sentinel=SENTINEL_TAG)
    return [SENTINEL_TAG], True


def validate_tags_not_empty(tags: Optional[Iterable[Any]]) -> bool:
    return bool(_clean(tags))
