"""Integration tests for create mode.

Tests the flow: RawSubmission -> tags, images, media, enrichment -> NormalizedContent
Enrichment is served by the AsyncMock fetcher from conftest.
"""
import asyncio
from datetime import datetime, timezone

import pytest

from nugget_engine.config.settings import Settings
from nugget_engine.core.exceptions import (
    CircuitBreakerOpenError,
    EmptyTagSetError,
    EnrichmentUnavailableError,
    ValidationError,
)
from nugget_engine.models.schemas import (
    CardType,
    DiagnosticCode,
    DisplayFlag,
    MediaKind,
    MediaRef,
    RawSubmission,
    TitleSource,
    media_item_id,
)
from nugget_engine.normalization import ContentNormalizer, normalize_for_create

from tests.conftest import ARTICLE_URL, IMAGE_URL, PDF_URL, YOUTUBE_URL

pytestmark = pytest.mark.integration


class TestCreateBasics:
    """End-to-end create scenarios."""

    @pytest.mark.asyncio
    async def test_single_image_submission(self, normalizer, preview_fetcher):
        """Messy tags and one image become a media-only card."""
        result = await normalizer.normalize_for_create(
            RawSubmission(tags=["x", "X", " x "], urls=[IMAGE_URL])
        )
        content = result.content

        assert content.tags == ["x"]
        assert content.primary_media.kind == MediaKind.IMAGE
        assert content.primary_media.id == media_item_id(IMAGE_URL)
        assert content.primary_media.thumbnail == IMAGE_URL
        assert content.primary_media.show_in_gallery is True
        assert content.supporting_media == []
        assert content.image_urls == [IMAGE_URL]
        assert content.card_type == CardType.MEDIA_ONLY
        assert content.title is None
        assert content.title_source is None
        preview_fetcher.fetch_preview_metadata.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_case_variant_images_deduplicated(self, normalizer):
        """The first spelling of a case-insensitive duplicate is kept."""
        result = await normalizer.normalize_for_create(
            RawSubmission(tags=["a"], urls=["A.png", "a.png"])
        )

        assert result.content.image_urls == ["A.png"]
        assert result.content.primary_media.url == "A.png"
        assert result.content.supporting_media == []
        assert DiagnosticCode.DUPLICATE_IMAGE_REMOVED in result.codes

    @pytest.mark.asyncio
    async def test_uploaded_images_join_flat_list(self, normalizer):
        """Uploaded images are stored alongside pasted ones."""
        upload = "https://cdn.example.com/uploads/dog.jpg"
        result = await normalizer.normalize_for_create(
            RawSubmission(
                tags=["a"],
                urls=[IMAGE_URL],
                uploaded_media=[MediaRef(kind=MediaKind.IMAGE, url=upload)],
            )
        )

        assert result.content.image_urls == [IMAGE_URL, upload]
        assert [item.url for item in result.content.supporting_media] == [upload]

    @pytest.mark.asyncio
    async def test_text_only(self, normalizer):
        """Content without media is a hybrid card with a derived excerpt."""
        result = await normalizer.normalize_for_create(
            RawSubmission(tags=["notes"], content="  Just words.  ")
        )

        assert result.content.content == "Just words."
        assert result.content.excerpt == "Just words."
        assert result.content.read_time == 1
        assert result.content.primary_media is None
        assert result.content.card_type == CardType.HYBRID

    @pytest.mark.asyncio
    async def test_module_level_function(self, settings, preview_fetcher):
        """normalize_for_create works without managing a normalizer."""
        result = await normalize_for_create(
            RawSubmission(tags=["a"], content="Hello"),
            enrichment=preview_fetcher,
            settings=settings,
        )

        assert result.content.tags == ["a"]


class TestCreateCardType:
    """Card type decisions on full submissions."""

    @pytest.mark.asyncio
    async def test_short_caption_is_media_only(self, normalizer):
        """150 characters over two lines still fits as a caption."""
        text = "a" * 75 + "\n" + "b" * 74

        result = await normalizer.normalize_for_create(
            RawSubmission(tags=["a"], urls=[IMAGE_URL], content=text)
        )

        assert result.content.card_type == CardType.MEDIA_ONLY

    @pytest.mark.asyncio
    async def test_long_text_is_hybrid(self, normalizer):
        """Text past the length threshold needs its own block."""
        result = await normalizer.normalize_for_create(
            RawSubmission(tags=["a"], urls=[IMAGE_URL], content="a" * 210)
        )

        assert result.content.card_type == CardType.HYBRID

    @pytest.mark.asyncio
    async def test_many_lines_is_hybrid(self, normalizer):
        """Four short lines exceed the line threshold."""
        result = await normalizer.normalize_for_create(
            RawSubmission(tags=["a"], urls=[IMAGE_URL], content="one\ntwo\nthree\nfour")
        )

        assert result.content.card_type == CardType.HYBRID

    @pytest.mark.asyncio
    async def test_user_title_is_hybrid(self, normalizer):
        """A typed title needs the text block."""
        result = await normalizer.normalize_for_create(
            RawSubmission(tags=["a"], urls=[IMAGE_URL], title="My cat", content="Short")
        )

        assert result.content.title_source == TitleSource.USER
        assert result.content.card_type == CardType.HYBRID


class TestCreateMediaClassification:
    """Primary selection through the full pipeline."""

    @pytest.mark.asyncio
    async def test_video_beats_document(self, normalizer, preview_fetcher, settings):
        """A YouTube link outranks an earlier PDF."""
        result = await normalizer.normalize_for_create(
            RawSubmission(tags=["a"], urls=[PDF_URL, YOUTUBE_URL])
        )
        content = result.content

        assert content.primary_media.kind == MediaKind.VIDEO_EMBED
        assert content.primary_media.thumbnail == (
            "https://img.youtube.com/vi/dQw4w9WgXcQ/hqdefault.jpg"
        )
        assert [(i.kind, i.url) for i in content.supporting_media] == [
            (MediaKind.DOCUMENT, PDF_URL)
        ]
        assert content.supporting_media[0].show_in_gallery is False
        assert content.image_urls == []
        preview_fetcher.fetch_preview_metadata.assert_awaited_once_with(
            YOUTUBE_URL, settings.enrichment_timeout_seconds
        )

    @pytest.mark.asyncio
    async def test_tie_goes_to_first(self, normalizer):
        """Two links of equal rank keep input order."""
        other = "https://example.org/post"

        result = await normalizer.normalize_for_create(
            RawSubmission(tags=["a"], urls=[ARTICLE_URL, other])
        )

        assert result.content.primary_media.url == ARTICLE_URL
        assert result.content.supporting_media[0].url == other

    @pytest.mark.asyncio
    async def test_every_item_has_metadata(self, normalizer):
        """Items leave with at least minimal preview metadata."""
        result = await normalizer.normalize_for_create(
            RawSubmission(tags=["a"], urls=[ARTICLE_URL, PDF_URL, IMAGE_URL])
        )

        items = [result.content.primary_media] + result.content.supporting_media
        assert all(item.preview_metadata is not None for item in items)
        assert all(item.preview_metadata.url == item.url for item in items)

    @pytest.mark.asyncio
    async def test_display_flags_applied(self, normalizer):
        """Gallery flags reach supporting items by URL."""
        result = await normalizer.normalize_for_create(
            RawSubmission(
                tags=["a"],
                urls=[YOUTUBE_URL, PDF_URL],
                display_flags=[DisplayFlag(url=PDF_URL, show_in_gallery=True, gallery_caption="Slides")],
            )
        )

        supporting = result.content.supporting_media[0]
        assert supporting.show_in_gallery is True
        assert supporting.gallery_caption == "Slides"


class TestCreateEnrichment:
    """Preview enrichment and its degradation paths."""

    @pytest.mark.asyncio
    async def test_fetched_metadata_used(self, normalizer, preview_fetcher, youtube_metadata):
        """Fetched metadata replaces the synthesized minimum and supplies the title."""
        preview_fetcher.fetch_preview_metadata.return_value = youtube_metadata

        result = await normalizer.normalize_for_create(
            RawSubmission(tags=["music"], urls=[YOUTUBE_URL])
        )
        content = result.content

        assert content.primary_media.preview_metadata.title == youtube_metadata.title
        assert content.primary_media.preview_metadata.title_source == "youtube-oembed"
        assert content.title == "Never Gonna Give You Up"
        assert content.title_source == TitleSource.METADATA
        assert content.excerpt == "Never Gonna Give You Up"
        assert content.card_type == CardType.MEDIA_ONLY
        assert result.diagnostics == []

    @pytest.mark.asyncio
    async def test_user_title_not_replaced(self, normalizer, preview_fetcher, youtube_metadata):
        """A typed title wins over the fetched one."""
        preview_fetcher.fetch_preview_metadata.return_value = youtube_metadata

        result = await normalizer.normalize_for_create(
            RawSubmission(tags=["music"], urls=[YOUTUBE_URL], title="Friday song")
        )

        assert result.content.title == "Friday song"
        assert result.content.title_source == TitleSource.USER

    @pytest.mark.asyncio
    async def test_title_matching_preview_is_metadata(
        self, normalizer, preview_fetcher, youtube_metadata
    ):
        """A submitted title equal to the preview title counts as metadata."""
        preview_fetcher.fetch_preview_metadata.return_value = youtube_metadata

        result = await normalizer.normalize_for_create(
            RawSubmission(tags=["music"], urls=[YOUTUBE_URL], title="never gonna give you up")
        )

        assert result.content.title_source == TitleSource.METADATA

    @pytest.mark.asyncio
    async def test_timeout_degrades(self, normalizer, preview_fetcher):
        """A lookup slower than the timeout yields minimal metadata and a diagnostic."""
        async def slow(url, timeout):
            await asyncio.sleep(5)

        preview_fetcher.fetch_preview_metadata.side_effect = slow

        result = await normalizer.normalize_for_create(
            RawSubmission(tags=["a"], urls=[YOUTUBE_URL])
        )

        metadata = result.content.primary_media.preview_metadata
        assert metadata.title is None
        assert metadata.media_type == MediaKind.VIDEO_EMBED
        degraded = [d for d in result.diagnostics if d.code == DiagnosticCode.ENRICHMENT_DEGRADED]
        assert degraded[0].detail["reason"] == "timeout"

    @pytest.mark.asyncio
    async def test_failure_degrades(self, normalizer, preview_fetcher):
        """A failing lookup never aborts the create."""
        preview_fetcher.fetch_preview_metadata.side_effect = EnrichmentUnavailableError(
            ARTICLE_URL, "service down"
        )

        result = await normalizer.normalize_for_create(
            RawSubmission(tags=["a"], urls=[ARTICLE_URL], content="Worth reading")
        )

        assert result.content.primary_media.kind == MediaKind.LINK
        assert result.content.title is None
        degraded = [d for d in result.diagnostics if d.code == DiagnosticCode.ENRICHMENT_DEGRADED]
        assert degraded[0].detail["reason"] == "EnrichmentUnavailableError"

    @pytest.mark.asyncio
    async def test_open_circuit_degrades(self, normalizer, preview_fetcher):
        """A rejected lookup from an open breaker is reported, not raised."""
        preview_fetcher.fetch_preview_metadata.side_effect = CircuitBreakerOpenError(
            "link_preview", 42.0
        )

        result = await normalizer.normalize_for_create(
            RawSubmission(tags=["a"], urls=[ARTICLE_URL])
        )

        assert result.content.primary_media.url == ARTICLE_URL
        degraded = [d for d in result.diagnostics if d.code == DiagnosticCode.ENRICHMENT_DEGRADED]
        assert degraded[0].detail["reason"] == "CircuitBreakerOpenError"

    @pytest.mark.asyncio
    async def test_disabled(self, preview_fetcher, store):
        """With enrichment off no lookup is attempted."""
        settings = Settings(_env_file=None, enrichment_enabled=False)
        normalizer = ContentNormalizer(enrichment=preview_fetcher, store=store, settings=settings)

        result = await normalizer.normalize_for_create(
            RawSubmission(tags=["a"], urls=[YOUTUBE_URL])
        )

        preview_fetcher.fetch_preview_metadata.assert_not_awaited()
        assert result.diagnostics == []

    @pytest.mark.asyncio
    async def test_uploaded_metadata_not_refetched(self, normalizer, preview_fetcher, youtube_metadata):
        """A ref that arrives with metadata is not looked up again."""
        result = await normalizer.normalize_for_create(
            RawSubmission(
                tags=["a"],
                uploaded_media=[
                    MediaRef(
                        kind=MediaKind.VIDEO_EMBED,
                        url=YOUTUBE_URL,
                        preview_metadata=youtube_metadata,
                    )
                ],
            )
        )

        preview_fetcher.fetch_preview_metadata.assert_not_awaited()
        assert result.content.primary_media.preview_metadata == youtube_metadata


class TestCreateRejections:
    """Submissions that cannot be saved."""

    @pytest.mark.asyncio
    async def test_empty_tags_rejected(self, normalizer):
        """Tags that normalize to nothing abort the create."""
        with pytest.raises(EmptyTagSetError) as exc_info:
            await normalizer.normalize_for_create(
                RawSubmission(tags=["", "   ", None], content="Hello")
            )

        assert exc_info.value.details["raw_count"] == 3

    @pytest.mark.asyncio
    async def test_nothing_to_show_rejected(self, normalizer):
        """No content, media or images is a validation error."""
        with pytest.raises(ValidationError) as exc_info:
            await normalizer.normalize_for_create(RawSubmission(tags=["a"], content="   "))

        assert exc_info.value.details["codes"] == ["CONTENT_REQUIRED"]
        assert exc_info.value.details["field"] == "content"


class TestCreateAdminDate:
    """Custom creation dates."""

    @pytest.mark.asyncio
    async def test_admin_date_kept(self, normalizer):
        """Admins may backdate content."""
        when = datetime(2023, 5, 1, tzinfo=timezone.utc)

        result = await normalizer.normalize_for_create(
            RawSubmission(tags=["a"], content="Hi", custom_created_at=when, is_admin=True)
        )

        assert result.content.custom_created_at == when

    @pytest.mark.asyncio
    async def test_non_admin_date_ignored(self, normalizer):
        """Other users' dates are dropped with a diagnostic."""
        when = datetime(2023, 5, 1, tzinfo=timezone.utc)

        result = await normalizer.normalize_for_create(
            RawSubmission(tags=["a"], content="Hi", custom_created_at=when)
        )

        assert result.content.custom_created_at is None
        assert result.codes == [DiagnosticCode.CUSTOM_DATE_IGNORED]
