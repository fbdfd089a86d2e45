"""
Enrichment collaborators.

Fetch link preview metadata for link-like primary media:
- base: PreviewMetadataFetcher interface
- link_preview: httpx client for YouTube oEmbed and Open Graph
"""

from nugget_engine.enrichment.base import PreviewMetadataFetcher
from nugget_engine.enrichment.link_preview import (
    LinkPreviewClient,
    parse_oembed,
    parse_open_graph,
)

__all__ = [
    "PreviewMetadataFetcher",
    "LinkPreviewClient",
    "parse_oembed",
    "parse_open_graph",
]
