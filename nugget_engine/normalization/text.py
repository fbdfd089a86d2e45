"""Text derivations: excerpt, read time, and the length signals used for card type."""

import math
import re
from typing import Optional

from nugget_engine.constants import (
    EXCERPT_ELLIPSIS,
    EXCERPT_MAX_LENGTH,
    LINE_COUNT_THRESHOLD,
    READ_WORDS_PER_MINUTE,
    TEXT_LENGTH_THRESHOLD,
)

_WHITESPACE_RE = re.compile(r"\s+")


def text_length(content: Optional[str]) -> int:
    return len((content or "").strip())


def line_count(content: Optional[str]) -> int:
    """Lines in the stripped text; empty text has zero lines."""
    stripped = (content or "").strip()
    if not stripped:
        return 0
    return len(stripped.splitlines())


def is_minimal_text(content: Optional[str]) -> bool:
    """Short enough to sit on the media as an untruncated caption."""
    return (
        text_length(content) <= TEXT_LENGTH_THRESHOLD
        and line_count(content) <= LINE_COUNT_THRESHOLD
    )


def derive_excerpt(content: Optional[str], title: Optional[str] = None) -> str:
    """
    Single-line excerpt of at most EXCERPT_MAX_LENGTH characters.

    Taken from the content, or from the title when there is no content.
    Truncated text ends in an ellipsis that counts toward the limit.
    """
    source = (content or "").strip() or (title or "").strip()
    flattened = _WHITESPACE_RE.sub(" ", source)
    if len(flattened) <= EXCERPT_MAX_LENGTH:
        return flattened
    cut = EXCERPT_MAX_LENGTH - len(EXCERPT_ELLIPSIS)
    return flattened[:cut].rstrip() + EXCERPT_ELLIPSIS


def estimate_read_time(content: Optional[str]) -> int:
    """Whole minutes at READ_WORDS_PER_MINUTE, never less than one."""
    words = len((content or "").split())
    return max(1, math.ceil(words / READ_WORDS_PER_MINUTE))
