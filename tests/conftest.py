"""
Pytest Configuration and Shared Fixtures.

This module provides common fixtures for all tests:

- settings: Settings isolated from the environment and .env
- preview_fetcher: AsyncMock standing in for the link preview service
- store: Empty in-memory content store
- normalizer: ContentNormalizer wired to the three above
- youtube_metadata: Provider-sourced preview metadata for a YouTube video
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from nugget_engine.config.settings import Settings, get_settings
from nugget_engine.core.circuit_breaker import reset_all_circuit_breakers
from nugget_engine.enrichment.base import PreviewMetadataFetcher
from nugget_engine.models.schemas import MediaKind, PreviewMetadata
from nugget_engine.normalization.pipeline import ContentNormalizer
from nugget_engine.storage.memory import InMemoryContentStore

YOUTUBE_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
IMAGE_URL = "https://example.com/photos/cat.png"
ARTICLE_URL = "https://example.com/articles/launch"
PDF_URL = "https://example.com/files/report.pdf"


@pytest.fixture(autouse=True)
def reset_global_state():
    """Clear cached settings and breaker state between tests."""
    get_settings.cache_clear()
    reset_all_circuit_breakers()
    yield
    get_settings.cache_clear()
    reset_all_circuit_breakers()


@pytest.fixture
def settings() -> Settings:
    """Settings with defaults only and a short enrichment timeout."""
    return Settings(_env_file=None, enrichment_timeout_seconds=0.2)


@pytest.fixture
def preview_fetcher() -> AsyncMock:
    """Preview fetcher that finds nothing unless a test says otherwise."""
    fetcher = AsyncMock(spec=PreviewMetadataFetcher)
    fetcher.fetch_preview_metadata.return_value = None
    return fetcher


@pytest.fixture
def store() -> InMemoryContentStore:
    return InMemoryContentStore()


@pytest.fixture
def normalizer(settings, preview_fetcher, store) -> ContentNormalizer:
    return ContentNormalizer(enrichment=preview_fetcher, store=store, settings=settings)


@pytest.fixture
def youtube_metadata() -> PreviewMetadata:
    """Metadata as the oEmbed lookup returns it."""
    return PreviewMetadata(
        url=YOUTUBE_URL,
        title="Never Gonna Give You Up",
        description="Rick Astley",
        image_url="https://i.ytimg.com/vi/dQw4w9WgXcQ/hqdefault.jpg",
        site_name="YouTube",
        media_type=MediaKind.VIDEO_EMBED,
        title_source="youtube-oembed",
        title_fetched_at=datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc),
    )
