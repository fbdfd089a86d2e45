"""Unit tests for flat image list deduplication."""

from nugget_engine.models.schemas import DiagnosticCode
from nugget_engine.normalization.images import (
    dedupe_for_create,
    dedupe_for_edit,
    detect_duplicate_images,
)


class TestDedupeForCreate:
    """Tests for create-mode dedup."""

    def test_case_variants_collapse_to_first(self):
        """The first spelling survives a case-insensitive duplicate."""
        result = dedupe_for_create(["A.png", "a.png"])

        assert result.urls == ["A.png"]
        assert [(r.url, r.kept) for r in result.removed] == [("a.png", "A.png")]

    def test_removals_reported_as_diagnostics(self):
        """Every dropped duplicate produces a diagnostic."""
        result = dedupe_for_create(["x.png", " X.PNG ", "x.png"])

        assert result.urls == ["x.png"]
        assert [d.code for d in result.diagnostics] == [
            DiagnosticCode.DUPLICATE_IMAGE_REMOVED,
            DiagnosticCode.DUPLICATE_IMAGE_REMOVED,
        ]

    def test_blanks_and_non_strings_dropped(self):
        """Unusable entries never reach the output."""
        result = dedupe_for_create(["", "  ", None, "b.png"])

        assert result.urls == ["b.png"]
        assert result.removed == []

    def test_order_preserved(self):
        """Unique URLs keep their order."""
        assert dedupe_for_create(["c.png", "a.png", "b.png"]).urls == ["c.png", "a.png", "b.png"]


class TestDedupeForEdit:
    """Tests for edit-mode dedup."""

    def test_omission_is_not_deletion(self):
        """Existing URLs survive when the submission omits them."""
        result = dedupe_for_edit(["a.png", "b.png"], [])

        assert result.urls == ["a.png", "b.png"]

    def test_new_urls_appended(self):
        """Incoming URLs follow the existing ones."""
        result = dedupe_for_edit(["a.png"], ["c.png"])

        assert result.urls == ["a.png", "c.png"]

    def test_resubmitted_url_is_not_a_duplicate(self):
        """Sending a stored URL again is a carry-over, not a removal."""
        result = dedupe_for_edit(["a.png"], ["a.png"])

        assert result.urls == ["a.png"]
        assert result.removed == []
        assert result.diagnostics == []

    def test_case_variant_of_existing_is_removed(self):
        """A differently cased copy of a stored URL is a duplicate."""
        result = dedupe_for_edit(["a.png"], ["A.PNG"])

        assert result.urls == ["a.png"]
        assert [r.url for r in result.removed] == ["A.PNG"]

    def test_explicit_delete_removes(self):
        """Only an explicit delete drops an existing URL."""
        result = dedupe_for_edit(["a.png", "b.png"], [], deleted_urls=["B.png"])

        assert result.urls == ["a.png"]
        assert result.deleted == ["b.png"]

    def test_relocated_urls_leave_flat_list(self):
        """URLs moved into supporting media leave the flat list."""
        result = dedupe_for_edit(["a.png", "b.png"], [], supporting_media=["a.png"])

        assert result.urls == ["b.png"]
        assert result.relocated == ["a.png"]

    def test_stored_case_variants_kept(self):
        """Duplicates already in the stored list are left for the owner to delete."""
        stored = ["https://x.com/A.png", "https://x.com/a.png"]

        result = dedupe_for_edit(stored, [])

        assert result.urls == stored
        assert result.removed == []
        assert result.diagnostics == []

    def test_stored_spelling_untouched(self):
        """Stored entries come back byte-for-byte, whitespace included."""
        result = dedupe_for_edit([" https://x.com/b.png", "https://x.com/c.png "], [])

        assert result.urls == [" https://x.com/b.png", "https://x.com/c.png "]

    def test_incoming_matched_against_untrimmed_stored(self):
        """A trimmed resubmission of an untrimmed stored URL is a carry-over."""
        result = dedupe_for_edit([" https://x.com/b.png"], ["https://x.com/b.png"])

        assert result.urls == [" https://x.com/b.png"]
        assert result.removed == []

    def test_incoming_duplicates_collapse(self):
        """New URLs are deduplicated among themselves."""
        result = dedupe_for_edit(["a.png"], ["c.png", "C.png"])

        assert result.urls == ["a.png", "c.png"]
        assert [(r.url, r.kept) for r in result.removed] == [("C.png", "c.png")]


class TestDetectDuplicateImages:
    """Tests for near-duplicate reporting."""

    def test_reports_case_variants(self):
        """Case variants are reported as case-insensitive matches."""
        findings = detect_duplicate_images(["https://x.com/A.png", "https://x.com/a.png"])

        assert len(findings) == 1
        assert findings[0].code == DiagnosticCode.NEAR_DUPLICATE_IMAGE
        assert findings[0].detail["type"] == "case-insensitive"

    def test_reports_query_variants(self):
        """Size variants of one image are reported as query-params matches."""
        findings = detect_duplicate_images(
            ["https://x.com/a.png?w=100", "https://x.com/a.png?w=800"]
        )

        assert [f.detail["type"] for f in findings] == ["query-params"]
        assert findings[0].detail["matches"] == "https://x.com/a.png?w=100"

    def test_exact_repeats_not_reported(self):
        """Exact repeats are dedup's job, not a near-duplicate."""
        assert detect_duplicate_images(["https://x.com/a.png", "https://x.com/a.png"]) == []

    def test_distinct_images_clean(self):
        """Different images produce no findings."""
        assert detect_duplicate_images(["https://x.com/a.png", "https://x.com/b.png"]) == []
