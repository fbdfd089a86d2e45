"""Link preview client: YouTube oEmbed and Open Graph over HTTP.

YouTube URLs go through the public oEmbed endpoint, which returns a clean
title and thumbnail. Everything else is fetched as HTML and read for Open
Graph tags, falling back to <title> and the description meta tag.

Requests pass through the "link_preview" circuit breaker and are retried on
transport errors. Every failure surfaces as an EnrichmentError subclass; the
normalizer turns those into degraded metadata.
"""

from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import urljoin

import httpx
import structlog
from bs4 import BeautifulSoup
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from nugget_engine.config.settings import Settings, get_settings
from nugget_engine.constants import OPEN_GRAPH_TITLE_SOURCE, YOUTUBE_TITLE_SOURCE
from nugget_engine.core.circuit_breaker import get_circuit_breaker
from nugget_engine.core.exceptions import (
    CircuitBreakerOpenError,
    EnrichmentResponseError,
    EnrichmentTimeoutError,
    EnrichmentUnavailableError,
)
from nugget_engine.enrichment.base import PreviewMetadataFetcher
from nugget_engine.models.schemas import MediaKind, PreviewMetadata
from nugget_engine.monitoring.metrics import track_enrichment
from nugget_engine.normalization.urls import extract_youtube_video_id, is_youtube_url

logger = structlog.get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

YOUTUBE_OEMBED_ENDPOINT = "https://www.youtube.com/oembed"
YOUTUBE_SITE_NAME = "YouTube"

HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


# =============================================================================
# Parsing
# =============================================================================


def _meta_content(soup: BeautifulSoup, **attrs: str) -> Optional[str]:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return None
    content = (tag.get("content") or "").strip()
    return content or None


def parse_open_graph(html: str, url: str) -> Optional[PreviewMetadata]:
    """Read Open Graph tags from a page, with plain HTML fallbacks.

    Returns None when the page carries neither a title nor a description
    nor an image.
    """
    soup = BeautifulSoup(html, "html.parser")

    title = _meta_content(soup, property="og:title")
    if not title and soup.title and soup.title.string:
        title = soup.title.string.strip() or None

    description = _meta_content(soup, property="og:description") or _meta_content(
        soup, name="description"
    )

    image_url = _meta_content(soup, property="og:image")
    if image_url:
        # Relative og:image paths resolve against the page URL
        image_url = urljoin(url, image_url)

    site_name = _meta_content(soup, property="og:site_name")

    if not (title or description or image_url):
        return None

    return PreviewMetadata(
        url=url,
        title=title,
        description=description,
        image_url=image_url,
        site_name=site_name,
        media_type=MediaKind.LINK,
        title_source=OPEN_GRAPH_TITLE_SOURCE if title else None,
        title_fetched_at=datetime.now(timezone.utc) if title else None,
    )


def parse_oembed(data: dict[str, Any], url: str) -> PreviewMetadata:
    """Map a YouTube oEmbed response onto PreviewMetadata."""
    title = (data.get("title") or "").strip() or None
    return PreviewMetadata(
        url=url,
        title=title,
        description=(data.get("author_name") or None),
        image_url=data.get("thumbnail_url"),
        site_name=data.get("provider_name") or YOUTUBE_SITE_NAME,
        media_type=MediaKind.VIDEO_EMBED,
        title_source=YOUTUBE_TITLE_SOURCE if title else None,
        title_fetched_at=datetime.now(timezone.utc) if title else None,
    )


# =============================================================================
# Client
# =============================================================================


class LinkPreviewClient(PreviewMetadataFetcher):
    """Async preview fetcher backed by httpx.

    Example:
        async with LinkPreviewClient() as client:
            metadata = await client.fetch_preview_metadata(
                "https://youtu.be/dQw4w9WgXcQ", timeout=3.0
            )
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the client.

        Args:
            settings: Engine settings. Loaded from the environment if omitted.
            client: Pre-built httpx client, mainly for tests. Not closed by aclose().
        """
        self._settings = settings or get_settings()
        self._client = client
        self._owns_client = client is None
        self._breaker = get_circuit_breaker(
            "link_preview",
            failure_threshold=self._settings.enrichment_failure_threshold,
            recovery_timeout=self._settings.enrichment_recovery_timeout,
        )

    async def __aenter__(self) -> "LinkPreviewClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                follow_redirects=True,
                headers={
                    "User-Agent": self._settings.enrichment_user_agent,
                    "Accept-Language": "en-US,en;q=0.9",
                },
            )
            self._owns_client = True
        return self._client

    async def _get(self, url: str, timeout: float, **kwargs: Any) -> httpx.Response:
        """GET with retries on transport errors. Raises httpx errors unchanged."""
        client = await self._ensure_client()
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(httpx.TransportError),
            stop=stop_after_attempt(self._settings.enrichment_max_retries),
            wait=wait_exponential(multiplier=0.1, max=1),
            reraise=True,
        ):
            with attempt:
                response = await client.get(url, timeout=timeout, **kwargs)
                response.raise_for_status()
                return response
        raise AssertionError("unreachable")

    async def fetch_preview_metadata(
        self,
        url: str,
        timeout: float,
    ) -> Optional[PreviewMetadata]:
        """Fetch preview metadata through the circuit breaker.

        Raises:
            CircuitBreakerOpenError: The link_preview circuit is open.
            EnrichmentUnavailableError: Connection failure or 5xx.
            EnrichmentTimeoutError: The lookup exceeded `timeout`.
            EnrichmentResponseError: 4xx or an unparseable response.
        """
        if not self._breaker.can_execute():
            recovery_time = self._breaker.time_until_recovery()
            logger.warning("link_preview_circuit_open", url=url, recovery_time=recovery_time)
            raise CircuitBreakerOpenError(self._breaker.name, recovery_time)

        youtube = is_youtube_url(url)
        provider = YOUTUBE_TITLE_SOURCE if youtube else OPEN_GRAPH_TITLE_SOURCE
        with track_enrichment(provider) as tracked:
            metadata = await self._fetch(url, timeout, youtube)
            tracked["status"] = "hit" if metadata is not None else "miss"

        await self._breaker.record_success()
        logger.debug(
            "link_preview_fetched",
            url=url,
            found=metadata is not None,
            title_source=metadata.title_source if metadata else None,
        )
        return metadata

    async def _fetch(self, url: str, timeout: float, youtube: bool) -> Optional[PreviewMetadata]:
        """Run one lookup, mapping httpx failures onto EnrichmentError."""
        try:
            if youtube:
                return await self._fetch_oembed(url, timeout)
            return await self._fetch_open_graph(url, timeout)

        except httpx.TimeoutException as e:
            await self._breaker.record_failure()
            logger.warning("link_preview_timeout", url=url, error=str(e))
            raise EnrichmentTimeoutError(url, f"Request timeout: {e}") from e

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status >= 500:
                await self._breaker.record_failure()
                logger.warning("link_preview_server_error", url=url, status_code=status)
                raise EnrichmentUnavailableError(
                    url, f"Preview host error {status}", {"status_code": status}
                ) from e
            # 4xx is about this URL, not the service
            logger.info("link_preview_client_error", url=url, status_code=status)
            raise EnrichmentResponseError(
                url, f"Preview host refused request: {status}", {"status_code": status}
            ) from e

        except httpx.RequestError as e:
            await self._breaker.record_failure()
            logger.warning("link_preview_request_error", url=url, error=str(e))
            raise EnrichmentUnavailableError(
                url, f"Request failed: {e}", {"original_error": str(e)}
            ) from e

        except ValueError as e:
            logger.info("link_preview_unparseable", url=url, error=str(e))
            raise EnrichmentResponseError(url, f"Unparseable response: {e}") from e

    async def _fetch_oembed(self, url: str, timeout: float) -> Optional[PreviewMetadata]:
        video_id = extract_youtube_video_id(url)
        # oEmbed only needs the video id; tracking params like si= are dropped
        oembed_url = f"https://www.youtube.com/watch?v={video_id}" if video_id else url
        response = await self._get(
            YOUTUBE_OEMBED_ENDPOINT,
            timeout,
            params={"url": oembed_url, "format": "json"},
        )
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("oEmbed response is not an object")
        return parse_oembed(data, url)

    async def _fetch_open_graph(self, url: str, timeout: float) -> Optional[PreviewMetadata]:
        response = await self._get(url, timeout, headers={"Accept": HTML_ACCEPT})
        content_type = response.headers.get("content-type", "")
        if content_type and "html" not in content_type.lower():
            return None
        return parse_open_graph(response.text, str(response.url) or url)
