"""Adapter lookup by source kind."""

from typing import Any

from curator.errors import ConfigurationError
from curator.ingestion.base_adapter import SourceAdapter
from curator.ingestion.hacker_news_adapter import HackerNewsAdapter
from curator.ingestion.product_hunt_adapter import ProductHuntAdapter
from curator.ingestion.rss_adapter import RSSAdapter
from curator.ingestion.serp_api_adapter import GoogleNewsAdapter, RedditSearchAdapter
from curator.sources.schemas import SourceKind

ADAPTERS: dict[SourceKind, type[SourceAdapter]] = {
    SourceKind.RSS: RSSAdapter,
    SourceKind.SERP_API_GOOGLE_NEWS: GoogleNewsAdapter,
    SourceKind.SERP_API_REDDIT: RedditSearchAdapter,
    SourceKind.HACKER_NEWS: HackerNewsAdapter,
    SourceKind.PRODUCT_HUNT: ProductHuntAdapter,
}


def adapter_for(kind: SourceKind | str, services: Any) -> SourceAdapter:
    """Instantiate the adapter for a source kind.

    Raises:
        ConfigurationError: for a kind without an adapter
    """
    try:
        adapter_cls = ADAPTERS[SourceKind(kind)]
    except (KeyError, ValueError) as e:
        raise ConfigurationError(f"No adapter for source kind {kind!r}") from e
    return adapter_cls(services)
