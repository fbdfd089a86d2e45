"""
Pre-save validation.

Last check before a document or payload is handed to the store. Three kinds
of findings:

- errors block the save (no tags, nothing to show)
- warnings mean data is about to be removed (edit only)
- integrity checks are an audit trail and never block anything
"""

from dataclasses import dataclass, field
from typing import Literal, Optional, Union

from nugget_engine.models.schemas import (
    ContentDocument,
    MediaKind,
    PersistedDocument,
)
from nugget_engine.normalization.urls import canonical_image_url

DocumentLike = Union[ContentDocument, PersistedDocument]


@dataclass(frozen=True)
class ValidationIssue:
    field: str
    code: str
    message: str


@dataclass(frozen=True)
class IntegrityCheck:
    name: str
    passed: bool
    details: Optional[str] = None


@dataclass
class PreSaveValidationResult:
    """Outcome of validate_before_save()."""

    is_valid: bool = True
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)
    integrity_checks: list[IntegrityCheck] = field(default_factory=list)

    def has_warning(self, code: str) -> bool:
        return any(w.code == code for w in self.warnings)

    def check(self, name: str) -> Optional[IntegrityCheck]:
        return next((c for c in self.integrity_checks if c.name == name), None)


def count_all_images(doc: DocumentLike) -> int:
    """Image-bearing slots on a document. A URL in two slots counts twice."""
    count = 0
    if doc.primary_media is not None and doc.primary_media.url:
        count += 1
    count += len(doc.supporting_media)
    legacy = getattr(doc, "media", None)
    if legacy is not None and legacy.kind == MediaKind.IMAGE and legacy.url:
        count += 1
    count += len(doc.image_urls)
    return count


def _all_urls(doc: DocumentLike) -> list[str]:
    urls: list[str] = []
    if doc.primary_media is not None:
        urls.append(doc.primary_media.url)
    urls.extend(item.url for item in doc.supporting_media)
    legacy = getattr(doc, "media", None)
    if legacy is not None:
        urls.append(legacy.url)
    urls.extend(doc.image_urls)
    return [u for u in urls if u]


def validate_before_save(
    original: Optional[DocumentLike],
    candidate: DocumentLike,
    mode: Literal["create", "edit"],
) -> PreSaveValidationResult:
    """
    Validate what is about to be saved.

    Args:
        original: The stored document (edit mode), else None.
        candidate: The full document as it will look after the save.
        mode: "create" or "edit".
    """
    result = PreSaveValidationResult()

    has_tags = any(isinstance(t, str) and t.strip() for t in candidate.tags)
    if not has_tags:
        result.errors.append(
            ValidationIssue("tags", "TAGS_REQUIRED", "At least one tag is required")
        )
    result.integrity_checks.append(IntegrityCheck("has_at_least_one_tag", has_tags))

    has_content = bool(candidate.content and candidate.content.strip())
    has_media = candidate.primary_media is not None or getattr(candidate, "media", None) is not None
    has_images = bool(candidate.image_urls)
    has_supporting = bool(candidate.supporting_media)
    has_anything = has_content or has_media or has_images or has_supporting
    if not has_anything:
        result.errors.append(
            ValidationIssue(
                "content",
                "CONTENT_REQUIRED",
                "Please provide content, a URL, or images",
            )
        )
    result.integrity_checks.append(
        IntegrityCheck(
            "has_content",
            has_anything,
            f"content={has_content}, media={has_media}, images={has_images}, "
            f"supporting={has_supporting}",
        )
    )

    if mode == "edit" and original is not None:
        before = count_all_images(original)
        after = count_all_images(candidate)
        if before > 0 and after < before:
            reduction = before - after
            result.warnings.append(
                ValidationIssue(
                    "images",
                    "IMAGES_REDUCED",
                    f"{reduction} image{'s' if reduction > 1 else ''} will be removed. "
                    "This cannot be undone.",
                )
            )
        result.integrity_checks.append(
            IntegrityCheck("images_preserved", after >= before, f"Original: {before}, New: {after}")
        )

        remaining = {canonical_image_url(u) for u in _all_urls(candidate)}
        removed = [u for u in _all_urls(original) if canonical_image_url(u) not in remaining]
        result.integrity_checks.append(
            IntegrityCheck(
                "urls_preserved",
                not removed,
                f"Removed URLs: {', '.join(removed)}" if removed else None,
            )
        )

    result.is_valid = not result.errors
    return result


def format_validation_result(result: PreSaveValidationResult) -> str:
    lines: list[str] = []
    if result.errors:
        lines.append("Errors:")
        lines.extend(f"  - {e.message}" for e in result.errors)
    if result.warnings:
        lines.append("Warnings:")
        lines.extend(f"  - {w.message}" for w in result.warnings)
    return "\n".join(lines)
