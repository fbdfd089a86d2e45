"""Unit tests for pre-save validation."""

from nugget_engine.models.schemas import (
    ContentDocument,
    MediaKind,
    PersistedDocument,
    PrimaryMedia,
    SupportingMediaItem,
)
from nugget_engine.normalization.validation import (
    count_all_images,
    format_validation_result,
    validate_before_save,
)

from tests.conftest import IMAGE_URL


class TestValidateBeforeSave:
    """Tests for validate_before_save."""

    def test_valid_document(self):
        """Tags plus content passes with all checks green."""
        result = validate_before_save(None, ContentDocument(tags=["a"], content="Hi"), "create")

        assert result.is_valid is True
        assert all(check.passed for check in result.integrity_checks)

    def test_missing_tags(self):
        """No tags is an error."""
        result = validate_before_save(None, ContentDocument(content="Hi"), "create")

        assert result.is_valid is False
        assert [e.code for e in result.errors] == ["TAGS_REQUIRED"]

    def test_nothing_to_show(self):
        """No content, media or images is an error."""
        result = validate_before_save(None, ContentDocument(tags=["a"]), "create")

        assert [e.code for e in result.errors] == ["CONTENT_REQUIRED"]
        assert result.check("has_content").passed is False

    def test_media_alone_is_enough(self):
        """A primary with no text is valid."""
        doc = ContentDocument(tags=["a"], primary_media=PrimaryMedia(kind=MediaKind.IMAGE, url=IMAGE_URL))

        assert validate_before_save(None, doc, "create").is_valid is True

    def test_image_reduction_warns_on_edit(self):
        """Losing images on edit is a warning, not an error."""
        original = PersistedDocument(
            id="1",
            tags=["a"],
            image_urls=["https://x.com/1.png", "https://x.com/2.png"],
        )
        candidate = original.model_copy(update={"image_urls": ["https://x.com/1.png"]})

        result = validate_before_save(original, candidate, "edit")

        assert result.is_valid is True
        assert result.has_warning("IMAGES_REDUCED")
        assert result.check("images_preserved").passed is False
        assert "https://x.com/2.png" in result.check("urls_preserved").details

    def test_relocation_keeps_counts(self):
        """Moving an image into supporting media is not a reduction."""
        original = PersistedDocument(id="1", tags=["a"], image_urls=["https://x.com/1.png"])
        candidate = original.model_copy(
            update={
                "image_urls": [],
                "supporting_media": [SupportingMediaItem(kind=MediaKind.IMAGE, url="https://x.com/1.png")],
            }
        )

        result = validate_before_save(original, candidate, "edit")

        assert result.warnings == []
        assert result.check("urls_preserved").passed is True

    def test_create_mode_skips_edit_checks(self):
        """Image preservation is only checked on edit."""
        result = validate_before_save(None, ContentDocument(tags=["a"], content="x"), "create")

        assert result.check("images_preserved") is None


class TestHelpers:
    """Tests for counting and formatting."""

    def test_count_all_images_counts_slots(self):
        """A URL in two slots counts twice."""
        doc = ContentDocument(
            tags=["a"],
            primary_media=PrimaryMedia(kind=MediaKind.IMAGE, url=IMAGE_URL),
            image_urls=[IMAGE_URL],
        )

        assert count_all_images(doc) == 2

    def test_format_lists_errors_and_checks(self):
        """The report lists every error message."""
        result = validate_before_save(None, ContentDocument(), "create")

        report = format_validation_result(result)

        assert "Errors:" in report
        assert "At least one tag is required" in report
