"""Content normalization pipeline.

Composes tag normalization, image dedup, media classification and card type
classification into the two caller-facing operations:

- create: RawSubmission -> full NormalizedContent
- edit: RawSubmission + stored document -> UpdatePayload holding only the
  fields that change, where an absent field is untouched and None clears

Only ValidationError and StaleReadError leave this module. Everything else
(duplicates, failed enrichment, blocked metadata overwrites) is returned as
a diagnostic next to the result.
"""

import asyncio
from typing import Any, Optional

import structlog

from nugget_engine.config.settings import Settings, get_settings
from nugget_engine.core.diagnostics import DiagnosticsCollector
from nugget_engine.core.exceptions import ContentStoreError, StaleReadError, ValidationError
from nugget_engine.enrichment.base import PreviewMetadataFetcher
from nugget_engine.models.schemas import (
    CreateResult,
    DiagnosticCode,
    DisplayFlag,
    EditResult,
    MediaItem,
    MediaKind,
    MediaOrigin,
    MediaRef,
    NormalizedContent,
    PersistedDocument,
    PreviewMetadata,
    PrimaryMedia,
    RawSubmission,
    SupportingMediaItem,
    TitleSource,
    UpdatePayload,
    Visibility,
    media_item_id,
    url_key,
)
from nugget_engine.monitoring.metrics import track_normalization
from nugget_engine.normalization.card_type import card_type_for
from nugget_engine.normalization.images import (
    dedupe_for_create,
    dedupe_for_edit,
    detect_duplicate_images,
)
from nugget_engine.normalization.media import (
    MediaClassification,
    apply_display_flag,
    build_supporting,
    classify,
    flag_for,
    index_flags,
    media_refs_from_document,
    media_refs_from_urls,
    merge_preview_metadata,
)
from nugget_engine.normalization.tags import normalize_tags, normalize_tags_or_sentinel
from nugget_engine.normalization.text import derive_excerpt, estimate_read_time
from nugget_engine.normalization.urls import split_urls
from nugget_engine.normalization.validation import validate_before_save
from nugget_engine.storage.base import ContentStore

logger = structlog.get_logger(__name__)

# Primary kinds that are worth a preview lookup
ENRICHABLE_KINDS = frozenset({MediaKind.VIDEO_EMBED, MediaKind.LINK})

# Document fields an UpdatePayload may carry, in payload order
PAYLOAD_FIELDS = (
    "title",
    "title_source",
    "content",
    "excerpt",
    "read_time",
    "tags",
    "visibility",
    "primary_media",
    "supporting_media",
    "image_urls",
    "card_type",
    "custom_created_at",
)


def resolve_title_source(
    title: Optional[str],
    title_is_user_supplied: Optional[bool],
    primary: Optional[PrimaryMedia],
    stored_source: Optional[TitleSource] = None,
) -> Optional[TitleSource]:
    """
    Decide whether a title counts as typed by the user.

    - no title: no source
    - explicit flag: the flag decides
    - stored title already user-owned: stays user
    - title equal to the primary's preview title (case-insensitive): metadata
    - anything else: user
    """
    if not title:
        return None
    if title_is_user_supplied is not None:
        return TitleSource.USER if title_is_user_supplied else TitleSource.METADATA
    if stored_source == TitleSource.USER:
        return TitleSource.USER
    preview_title = primary.preview_metadata.title if primary and primary.preview_metadata else None
    if preview_title and preview_title.strip().casefold() == title.strip().casefold():
        return TitleSource.METADATA
    return TitleSource.USER


def _clean_title(title: Optional[str]) -> Optional[str]:
    if title is None:
        return None
    return title.strip() or None


def _item_flag(flags_by_key: dict[str, DisplayFlag], item: MediaItem) -> Optional[DisplayFlag]:
    return flags_by_key.get(item.id) or flags_by_key.get(media_item_id(item.url))


class ContentNormalizer:
    """Normalizes submissions for create and edit.

    Example:
        async with ContentNormalizer(store=store) as normalizer:
            created = await normalizer.normalize_for_create(submission)
            stored = await store.create(created.content)
            edited = await normalizer.normalize_for_edit(change, stored.id)
    """

    def __init__(
        self,
        enrichment: Optional[PreviewMetadataFetcher] = None,
        store: Optional[ContentStore] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize the normalizer.

        Args:
            enrichment: Preview fetcher. A LinkPreviewClient is created on
                first use when omitted and enrichment is enabled.
            store: Persistence collaborator. Required for edit mode.
            settings: Engine settings. Loaded from the environment if omitted.
        """
        self._settings = settings or get_settings()
        self._enrichment = enrichment
        self._owns_enrichment = False
        self._store = store

    async def __aenter__(self) -> "ContentNormalizer":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._enrichment is not None and self._owns_enrichment:
            await self._enrichment.aclose()
            self._enrichment = None
            self._owns_enrichment = False

    # -------------------------------------------------------------------------
    # Enrichment
    # -------------------------------------------------------------------------

    def _get_enrichment(self) -> PreviewMetadataFetcher:
        if self._enrichment is None:
            # Deferred: the HTTP client module imports the URL helpers from this package
            from nugget_engine.enrichment.link_preview import LinkPreviewClient

            self._enrichment = LinkPreviewClient(settings=self._settings)
            self._owns_enrichment = True
        return self._enrichment

    async def _fetch_metadata(
        self,
        url: str,
        diagnostics: DiagnosticsCollector,
    ) -> Optional[PreviewMetadata]:
        """Bounded preview lookup. Any failure yields None and a diagnostic."""
        if not self._settings.enrichment_enabled:
            return None

        timeout = self._settings.enrichment_timeout_seconds
        try:
            fetcher = self._get_enrichment()
            return await asyncio.wait_for(
                fetcher.fetch_preview_metadata(url, timeout),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            diagnostics.record(
                DiagnosticCode.ENRICHMENT_DEGRADED,
                url=url,
                reason="timeout",
                timeout=timeout,
            )
        except Exception as e:
            diagnostics.record(
                DiagnosticCode.ENRICHMENT_DEGRADED,
                url=url,
                reason=type(e).__name__,
                error=str(e),
            )
        return None

    async def _enrich_primary(
        self,
        primary: PrimaryMedia,
        primary_ref: Optional[MediaRef],
        diagnostics: DiagnosticsCollector,
    ) -> PrimaryMedia:
        """Replace synthesized metadata on a link-like primary with fetched metadata."""
        if primary.kind not in ENRICHABLE_KINDS:
            return primary
        if primary_ref is not None and primary_ref.preview_metadata is not None:
            return primary

        metadata = await self._fetch_metadata(primary.url, diagnostics)
        if metadata is None:
            return primary

        metadata = metadata.model_copy(update={"url": primary.url, "media_type": primary.kind})
        return primary.model_copy(
            update={
                "preview_metadata": metadata,
                "thumbnail": primary.thumbnail or metadata.image_url,
            }
        )

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    async def normalize_for_create(self, submission: RawSubmission) -> CreateResult:
        """Normalize a new submission into a full document.

        Raises:
            EmptyTagSetError: No usable tags were submitted.
            ValidationError: Nothing to show (no content, media or images).
        """
        with track_normalization("create"):
            return await self._create(submission)

    async def _create(self, submission: RawSubmission) -> CreateResult:
        diagnostics = DiagnosticsCollector(mode="create")

        tags = normalize_tags(submission.tags)

        image_urls, _ = split_urls(submission.urls)
        uploaded_images = [r.url for r in submission.uploaded_media if r.kind == MediaKind.IMAGE]
        dedup = dedupe_for_create(image_urls + uploaded_images)
        diagnostics.extend(dedup.diagnostics)
        diagnostics.extend(detect_duplicate_images(dedup.urls))

        refs = media_refs_from_urls(submission.urls) + list(submission.uploaded_media)
        classification = classify(refs, submission.display_flags)

        primary = classification.primary
        if primary is not None:
            primary = await self._enrich_primary(primary, classification.primary_ref, diagnostics)

        title = _clean_title(submission.title)
        title_source = resolve_title_source(title, submission.title_is_user_supplied, primary)
        if title is None and primary is not None and primary.preview_metadata is not None:
            fetched = primary.preview_metadata
            if fetched.is_externally_sourced and fetched.title:
                title, title_source = fetched.title.strip(), TitleSource.METADATA

        custom_created_at = self._admin_date(submission, diagnostics)

        content = (submission.content or "").strip()
        draft = NormalizedContent(
            title=title,
            title_source=title_source,
            content=content,
            excerpt=derive_excerpt(content, title),
            read_time=estimate_read_time(content),
            tags=tags,
            visibility=submission.visibility or Visibility.PUBLIC,
            primary_media=primary,
            supporting_media=classification.supporting,
            image_urls=dedup.urls,
            custom_created_at=custom_created_at,
        )
        document = draft.model_copy(update={"card_type": card_type_for(draft)})

        self._check_before_save(None, document, "create")

        logger.info(
            "content_normalized",
            mode="create",
            card_type=document.card_type.value,
            primary_kind=document.primary_media.kind.value if document.primary_media else None,
            supporting_count=len(document.supporting_media),
            diagnostics=len(diagnostics),
        )
        return CreateResult(content=document, diagnostics=diagnostics.items)

    # -------------------------------------------------------------------------
    # Edit
    # -------------------------------------------------------------------------

    async def _load_existing(self, content_id: str) -> PersistedDocument:
        if self._store is None:
            raise StaleReadError(content_id, "no content store configured")
        try:
            existing = await self._store.load_existing_content(content_id)
        except ContentStoreError as e:
            raise StaleReadError(content_id, "content store failed", {"error": str(e)}) from e
        if existing is None:
            raise StaleReadError(content_id, "not found")
        return existing

    async def normalize_for_edit(self, submission: RawSubmission, existing_id: str) -> EditResult:
        """Merge a submission into a stored document and return the changes.

        Raises:
            StaleReadError: The stored document cannot be loaded.
            ValidationError: The merged document would have nothing to show.
        """
        with track_normalization("edit"):
            return await self._edit(submission, existing_id)

    async def _edit(self, submission: RawSubmission, existing_id: str) -> EditResult:
        existing = await self._load_existing(existing_id)
        diagnostics = DiagnosticsCollector(mode="edit", content_id=existing_id)
        log = logger.bind(content_id=existing_id)

        merged: dict[str, Any] = {}

        # Tags
        if submission.tags is not None or not existing.tags:
            raw_tags = submission.tags if submission.tags is not None else existing.tags
            tags, substituted = normalize_tags_or_sentinel(raw_tags)
            if substituted:
                diagnostics.record(
                    DiagnosticCode.TAGS_SENTINEL_SUBSTITUTED,
                    raw_count=len(raw_tags),
                )
            merged["tags"] = tags

        # Media
        media_changes = await self._merge_media(existing, submission, diagnostics)
        merged.update(media_changes)
        primary = merged.get("primary_media", existing.primary_media)

        # Title
        if submission.title is not None:
            title = _clean_title(submission.title)
            title_source = resolve_title_source(
                title,
                submission.title_is_user_supplied,
                primary,
                stored_source=existing.title_source,
            )
            title, title_source = self._protect_metadata_title(
                existing, submission, title, title_source, primary, diagnostics
            )
            merged["title"] = title
            merged["title_source"] = title_source

        if submission.content is not None:
            merged["content"] = submission.content.strip()
        if submission.visibility is not None:
            merged["visibility"] = submission.visibility
        if submission.custom_created_at is not None:
            custom_created_at = self._admin_date(submission, diagnostics)
            if custom_created_at is not None:
                merged["custom_created_at"] = custom_created_at

        view = existing.model_copy(update=merged)
        view = view.model_copy(
            update={
                "excerpt": derive_excerpt(view.content, view.title),
                "read_time": estimate_read_time(view.content),
            }
        )
        view = view.model_copy(update={"card_type": card_type_for(view)})

        result = self._check_before_save(existing, view, "edit")
        if result.has_warning("IMAGES_REDUCED"):
            check = result.check("images_preserved")
            diagnostics.record(
                DiagnosticCode.IMAGES_REDUCED,
                details=check.details if check else None,
            )

        changes = {
            name: getattr(view, name)
            for name in PAYLOAD_FIELDS
            if getattr(view, name) != getattr(existing, name)
        }
        if existing.media is not None and view.media is None:
            changes["media"] = None
        payload = UpdatePayload(**changes)

        log.info(
            "content_normalized",
            mode="edit",
            fields=sorted(payload.model_fields_set),
            card_type=view.card_type.value,
            diagnostics=len(diagnostics),
        )
        return EditResult(content_id=existing_id, payload=payload, diagnostics=diagnostics.items)

    async def _merge_media(
        self,
        existing: PersistedDocument,
        submission: RawSubmission,
        diagnostics: DiagnosticsCollector,
    ) -> dict[str, Any]:
        """Rebuild primary, supporting and flat image fields for an edit.

        Returns only the media fields whose value may have changed; the caller
        diffs them against the stored document.
        """
        flags_by_key = index_flags(submission.display_flags)
        deleted_keys = {
            url_key(u) for u in submission.deleted_image_urls if isinstance(u, str) and u.strip()
        }

        stored_refs = media_refs_from_document(existing)
        stored_by_key = {url_key(r.url): r for r in stored_refs}
        has_new_primary = existing.primary_media is not None
        primary_ref = next(
            (
                r
                for r in stored_refs
                if r.origin == (MediaOrigin.NEW_PRIMARY if has_new_primary else MediaOrigin.LEGACY_MEDIA)
            ),
            None,
        )
        supporting_refs = [r for r in stored_refs if r.origin == MediaOrigin.NEW_SUPPORTING]
        flat_refs = [r for r in stored_refs if r.origin == MediaOrigin.LEGACY_IMAGE_LIST]

        def kept(ref: MediaRef) -> bool:
            return url_key(ref.url) not in deleted_keys

        # Flat URLs newly flagged for the gallery move into supporting media
        relocated = [
            r for r in flat_refs
            if kept(r) and (flag := flag_for(flags_by_key, r)) is not None and flag.show_in_gallery is True
        ]
        for ref in relocated:
            diagnostics.record(DiagnosticCode.IMAGE_RELOCATED, url=ref.url, item_id=ref.key)

        for key in sorted(deleted_keys):
            stored = stored_by_key.get(key)
            if stored is not None:
                diagnostics.record(
                    DiagnosticCode.IMAGE_EXPLICITLY_DELETED,
                    url=stored.url,
                    source=stored.origin.value,
                )

        urls = submission.urls
        explicit_clear = (
            urls is not None
            and not any(isinstance(u, str) and u.strip() for u in urls)
            and not submission.uploaded_media
        )
        primary_deleted = primary_ref is not None and not kept(primary_ref)
        submitted_refs = media_refs_from_urls(urls) + list(submission.uploaded_media)
        names_new_media = any(url_key(r.url) not in stored_by_key for r in submitted_refs)
        # Without a stored primary, resubmitting known URLs keeps the stored roles
        media_untouched = not submission.carries_media or (
            primary_ref is None and not names_new_media
        )
        remaining_supporting = [r for r in supporting_refs if kept(r)]

        changes: dict[str, Any] = {}
        migrated = False

        if explicit_clear:
            primary = None
            supporting = [
                apply_display_flag(item, _item_flag(flags_by_key, item))
                for item in existing.supporting_media
                if url_key(item.url) not in deleted_keys
            ] + [build_supporting(r, flag_for(flags_by_key, r)) for r in relocated]
            if primary_ref is not None:
                diagnostics.record(
                    DiagnosticCode.PRIMARY_MEDIA_CLEARED,
                    url=primary_ref.url,
                    reason="all urls removed",
                )
            migrated = existing.media is not None

        elif media_untouched and not primary_deleted and (
            has_new_primary or primary_ref is None
        ):
            # Media untouched or only restated: keep the stored items as they are
            primary = existing.primary_media
            if primary is not None:
                primary = apply_display_flag(primary, _item_flag(flags_by_key, primary))
            supporting = [
                apply_display_flag(item, _item_flag(flags_by_key, item))
                for item in existing.supporting_media
                if url_key(item.url) not in deleted_keys
            ] + [build_supporting(r, flag_for(flags_by_key, r)) for r in relocated]

        elif not submission.carries_media and not primary_deleted:
            # Legacy-only document, media untouched: leave the legacy fields alone
            primary = None
            supporting = [build_supporting(r, flag_for(flags_by_key, r)) for r in relocated]

        else:
            submitted = self._resolve_submitted(submitted_refs, stored_by_key)
            pool = ([primary_ref] if primary_ref is not None else []) + submitted + remaining_supporting
            pool = [r for r in pool if kept(r)]
            classification = classify(pool, submission.display_flags)
            primary, supporting = self._reuse_stored_items(classification, existing, flags_by_key)
            # Gallery-flagged flat images only ever become supporting media
            supporting += [build_supporting(r, flag_for(flags_by_key, r)) for r in relocated]

            if primary is not None:
                primary = await self._settle_primary(
                    primary, classification, existing, submission, diagnostics
                )
            elif primary_ref is not None:
                diagnostics.record(
                    DiagnosticCode.PRIMARY_MEDIA_CLEARED,
                    url=primary_ref.url,
                    reason="primary deleted",
                )
            migrated = existing.media is not None

        changes["primary_media"] = primary
        changes["supporting_media"] = supporting
        if migrated:
            changes["media"] = None

        # Flat image list: only URLs new to the document are appended
        stored_item_keys = {
            url_key(item.url)
            for item in ([existing.primary_media] if existing.primary_media else [])
            + list(existing.supporting_media)
        }
        submitted_images, _ = split_urls(urls)
        submitted_images += [
            r.url for r in submission.uploaded_media if r.kind == MediaKind.IMAGE
        ]
        incoming = [u for u in submitted_images if url_key(u) not in stored_item_keys]
        dedup = dedupe_for_edit(
            existing.image_urls,
            incoming,
            supporting_media=[r.url for r in relocated],
            deleted_urls=submission.deleted_image_urls,
        )
        diagnostics.extend(dedup.diagnostics)
        diagnostics.extend(detect_duplicate_images(incoming))
        changes["image_urls"] = dedup.urls

        return changes

    @staticmethod
    def _resolve_submitted(
        submitted: list[MediaRef],
        stored_by_key: dict[str, MediaRef],
    ) -> list[MediaRef]:
        """
        Map resubmitted URLs onto the stored refs they name.

        A stored ref keeps its identity, thumbnail and metadata. URLs that
        only live in the flat image list stay there; gallery flags are the
        one way they move into supporting media.
        """
        resolved: list[MediaRef] = []
        for ref in submitted:
            stored = stored_by_key.get(url_key(ref.url))
            if stored is None:
                resolved.append(ref)
            elif stored.origin != MediaOrigin.LEGACY_IMAGE_LIST:
                resolved.append(stored)
        return resolved

    @staticmethod
    def _reuse_stored_items(
        classification: MediaClassification,
        existing: PersistedDocument,
        flags_by_key: dict[str, DisplayFlag],
    ) -> tuple[Optional[PrimaryMedia], list[SupportingMediaItem]]:
        """Swap freshly built items for their stored objects when the role is unchanged."""
        primary = classification.primary
        stored_primary = existing.primary_media
        if primary is not None and stored_primary is not None and primary.id == stored_primary.id:
            primary = apply_display_flag(stored_primary, _item_flag(flags_by_key, stored_primary))

        stored_supporting = {item.id: item for item in existing.supporting_media}
        supporting: list[SupportingMediaItem] = []
        for item in classification.supporting:
            stored = stored_supporting.get(item.id)
            if stored is not None:
                item = apply_display_flag(stored, _item_flag(flags_by_key, stored))
            supporting.append(item)
        return primary, supporting

    async def _settle_primary(
        self,
        primary: PrimaryMedia,
        classification: MediaClassification,
        existing: PersistedDocument,
        submission: RawSubmission,
        diagnostics: DiagnosticsCollector,
    ) -> PrimaryMedia:
        """Protect stored metadata on a kept primary, enrich a new one."""
        stored = existing.primary_media
        if stored is not None and primary.id == stored.id:
            incoming = next(
                (
                    r.preview_metadata
                    for r in submission.uploaded_media
                    if url_key(r.url) == url_key(stored.url) and r.preview_metadata is not None
                ),
                None,
            )
            metadata, blocked = merge_preview_metadata(
                stored.preview_metadata,
                incoming,
                allow_override=submission.allow_metadata_override,
            )
            if blocked:
                diagnostics.record(
                    DiagnosticCode.METADATA_PRESERVED_OVERRIDE,
                    url=stored.url,
                    field="preview_metadata",
                    title_source=stored.preview_metadata.title_source if stored.preview_metadata else None,
                )
            if metadata != primary.preview_metadata:
                primary = primary.model_copy(update={"preview_metadata": metadata})
            return primary

        return await self._enrich_primary(primary, classification.primary_ref, diagnostics)

    @staticmethod
    def _protect_metadata_title(
        existing: PersistedDocument,
        submission: RawSubmission,
        title: Optional[str],
        title_source: Optional[TitleSource],
        primary: Optional[PrimaryMedia],
        diagnostics: DiagnosticsCollector,
    ) -> tuple[Optional[str], Optional[TitleSource]]:
        """Keep a provider-fetched title when a stale resubmission would replace it."""
        if (
            title_source != TitleSource.METADATA
            or existing.title_source != TitleSource.METADATA
            or submission.allow_metadata_override
            or title == existing.title
        ):
            return title, title_source

        stored_primary = existing.primary_media
        if primary is None or stored_primary is None or primary.id != stored_primary.id:
            return title, title_source
        metadata = stored_primary.preview_metadata
        if metadata is None or not metadata.is_externally_sourced:
            return title, title_source

        diagnostics.record(
            DiagnosticCode.METADATA_PRESERVED_OVERRIDE,
            url=stored_primary.url,
            field="title",
            title_source=metadata.title_source,
        )
        return existing.title, existing.title_source

    # -------------------------------------------------------------------------
    # Shared
    # -------------------------------------------------------------------------

    @staticmethod
    def _admin_date(submission: RawSubmission, diagnostics: DiagnosticsCollector):
        if submission.custom_created_at is None:
            return None
        if submission.is_admin:
            return submission.custom_created_at
        diagnostics.record(
            DiagnosticCode.CUSTOM_DATE_IGNORED,
            custom_created_at=submission.custom_created_at.isoformat(),
        )
        return None

    @staticmethod
    def _check_before_save(original, candidate, mode):
        result = validate_before_save(original, candidate, mode)
        if not result.is_valid:
            first = result.errors[0]
            raise ValidationError(
                first.message,
                field=first.field,
                details={"codes": [e.code for e in result.errors]},
            )
        return result


# =============================================================================
# Module-level API
# =============================================================================


async def normalize_for_create(submission: RawSubmission, **kwargs: Any) -> CreateResult:
    """Normalize a new submission. See ContentNormalizer for keyword arguments."""
    async with ContentNormalizer(**kwargs) as normalizer:
        return await normalizer.normalize_for_create(submission)


async def normalize_for_edit(
    submission: RawSubmission,
    existing_id: str,
    **kwargs: Any,
) -> EditResult:
    """Normalize an edit against a stored document. Needs `store=`."""
    async with ContentNormalizer(**kwargs) as normalizer:
        return await normalizer.normalize_for_edit(submission, existing_id)
