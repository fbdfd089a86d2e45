"""Enrichment collaborator interface.

Any preview source (HTTP client, cache, test double) implements
PreviewMetadataFetcher. The normalizer bounds every call with its own
timeout and turns every failure into degraded, minimal metadata.
"""

from abc import ABC, abstractmethod
from typing import Optional

from nugget_engine.models.schemas import PreviewMetadata


class PreviewMetadataFetcher(ABC):
    """Abstract source of link preview metadata."""

    @abstractmethod
    async def fetch_preview_metadata(
        self,
        url: str,
        timeout: float,
    ) -> Optional[PreviewMetadata]:
        """Fetch preview metadata for a URL.

        Args:
            url: The link or video URL to preview.
            timeout: Seconds the lookup may take.

        Returns:
            Metadata, or None when the page has nothing usable.

        Raises:
            EnrichmentError: On timeout, unreachable service or unusable response.
        """
        ...

    async def aclose(self) -> None:
        """Release any held resources."""
        return None
