"""
Image URL deduplication.

Create and edit share one equality rule: trimmed, case-insensitive URL
comparison, where the first-seen spelling wins. They differ in what they
may drop:

- create: any duplicate within the submitted list
- edit: incoming duplicates only; stored entries are returned as stored and
  leave the flat list solely when relocated or explicitly deleted
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

import structlog

from nugget_engine.models.schemas import Diagnostic, DiagnosticCode, url_key
from nugget_engine.normalization.urls import canonical_image_url

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RemovedDuplicate:
    """A dropped URL and the occurrence that was kept in its place."""

    url: str
    kept: str


@dataclass
class DedupResult:
    """Outcome of one dedup pass."""

    urls: list[str] = field(default_factory=list)
    removed: list[RemovedDuplicate] = field(default_factory=list)
    relocated: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def _record_removed(self, url: str, kept: str) -> None:
        self.removed.append(RemovedDuplicate(url=url, kept=kept))
        self.diagnostics.append(
            Diagnostic(
                code=DiagnosticCode.DUPLICATE_IMAGE_REMOVED,
                detail={"url": url, "kept": kept},
            )
        )


def _usable(urls: Optional[Iterable[str]]) -> list[str]:
    return [u.strip() for u in urls or () if isinstance(u, str) and u.strip()]


def dedupe_for_create(urls: Optional[Iterable[str]]) -> DedupResult:
    """Unique-by-first-seen over a single list. Nothing prior to protect."""
    result = DedupResult()
    kept: dict[str, str] = {}

    candidates = _usable(urls)
    for url in candidates:
        key = url_key(url)
        if key in kept:
            result._record_removed(url, kept[key])
            continue
        kept[key] = url

    result.urls = list(kept.values())
    if result.removed:
        logger.info(
            "image_dedup",
            mode="create",
            before=len(candidates),
            after=len(result.urls),
            removed=len(result.removed),
        )
    return result


def dedupe_for_edit(
    existing_urls: Optional[Iterable[str]],
    incoming_urls: Optional[Iterable[str]],
    supporting_media: Optional[Iterable[str]] = None,
    deleted_urls: Optional[Iterable[str]] = None,
) -> DedupResult:
    """
    Merge incoming image URLs into an existing flat list without losing any.

    Args:
        existing_urls: The stored flat image list.
        incoming_urls: Image URLs carried by this submission.
        supporting_media: URLs relocated into supporting media by this edit.
            Matching existing entries leave the flat list and are reported
            as relocated.
        deleted_urls: URLs the caller explicitly deleted. The only way an
            existing URL disappears outright.

    Omitting an existing URL from incoming_urls never removes it. Existing
    entries are returned exactly as stored, including untrimmed spellings and
    duplicates among themselves; only incoming URLs are deduplicated.
    """
    result = DedupResult()
    relocated_keys = {url_key(u) for u in _usable(supporting_media)}
    deleted_keys = {url_key(u) for u in _usable(deleted_urls)}

    existing = [u for u in existing_urls or () if isinstance(u, str)]
    stored: dict[str, str] = {}
    for url in existing:
        key = url_key(url)
        if key and key in deleted_keys:
            if url not in result.deleted:
                result.deleted.append(url)
            continue
        if key and key in relocated_keys:
            if url not in result.relocated:
                result.relocated.append(url)
            continue
        result.urls.append(url)
        stored.setdefault(key, url.strip())

    added: dict[str, str] = {}
    for url in _usable(incoming_urls):
        key = url_key(url)
        if key in deleted_keys or key in relocated_keys:
            continue
        if key in stored:
            # Resubmitting a stored URL verbatim is a carry-over, not a duplicate
            if stored[key] != url:
                result._record_removed(url, stored[key])
            continue
        if key in added:
            result._record_removed(url, added[key])
            continue
        added[key] = url
        result.urls.append(url)

    if result.removed or result.relocated or result.deleted:
        logger.info(
            "image_dedup",
            mode="edit",
            before=len(existing),
            after=len(result.urls),
            removed=len(result.removed),
            relocated=len(result.relocated),
            deleted=len(result.deleted),
        )
    return result


def detect_duplicate_images(urls: Optional[Iterable[str]]) -> list[Diagnostic]:
    """
    Report duplicates without removing anything.

    Two kinds are reported: exact duplicates under case folding, and
    query-string variants of the same image (same scheme, host and path).
    """
    findings: list[Diagnostic] = []
    seen_keys: dict[str, str] = {}
    seen_canonical: dict[str, str] = {}

    for url in _usable(urls):
        key = url_key(url)
        canonical = canonical_image_url(url)

        if key in seen_keys:
            if seen_keys[key] != url:
                findings.append(
                    Diagnostic(
                        code=DiagnosticCode.NEAR_DUPLICATE_IMAGE,
                        detail={"url": url, "matches": seen_keys[key], "type": "case-insensitive"},
                    )
                )
            continue

        if canonical in seen_canonical:
            findings.append(
                Diagnostic(
                    code=DiagnosticCode.NEAR_DUPLICATE_IMAGE,
                    detail={"url": url, "matches": seen_canonical[canonical], "type": "query-params"},
                )
            )

        seen_keys[key] = url
        seen_canonical.setdefault(canonical, url)

    return findings
