"""Link enrichment: richer per-link metadata for an entry's page."""

import logging
import math
from typing import Any

from curator.enrichment.config import EnrichmentConfig
from curator.enrichment.page import Page, fetch_page
from curator.errors import EnrichmentError
from curator.ingestion.http_client import HTTPClient, HTTPClientError, RetryConfig

logger = logging.getLogger(__name__)


def read_time_minutes(word_count: int | None, words_per_minute: int = 200) -> int | None:
    """ceil(words / wpm); None when there are no words."""
    if not word_count or word_count <= 0:
        return None
    return math.ceil(word_count / words_per_minute)


class LinkEnrichmentService:
    """
    Extract title, description, OG image, author, publish date, word count,
    read time, domain and favicon for a URL.

    Usage:
        service = LinkEnrichmentService()
        fields = await service.enrich("https://example.com/post")
    """

    def __init__(self, config: EnrichmentConfig | None = None) -> None:
        self._config = config or EnrichmentConfig()

    def _client(self) -> HTTPClient:
        return HTTPClient(
            retry_config=RetryConfig(max_retries=self._config.fetch_retries),
            timeout=self._config.fetch_timeout,
            user_agent=self._config.user_agent,
        )

    async def enrich(self, url: str) -> dict[str, Any]:
        """
        Raises:
            EnrichmentError: if the page cannot be fetched or parsed
        """
        try:
            async with self._client() as client:
                page = await fetch_page(client, url)
        except HTTPClientError as e:
            raise EnrichmentError(f"Failed to fetch URL {url}: {e}") from e

        try:
            return self.extract(page)
        except Exception as e:
            logger.warning("Link enrichment parse error for %s: %s", url, e)
            raise EnrichmentError(f"Enrichment failed for {url}: {e}") from e

    def extract(self, page: Page) -> dict[str, Any]:
        """Fields for the entry; values that could not be read are omitted."""
        word_count = page.word_count or None
        fields = {
            "title": page.best_title,
            "description": page.best_description,
            "og_image_url": page.best_image,
            "author_name": page.author,
            "published_at": page.published_at,
            "word_count": word_count,
            "read_time_minutes": read_time_minutes(word_count, self._config.words_per_minute),
            "domain": page.host,
            "favicon_url": page.favicon_url,
        }
        return {k: v for k, v in fields.items() if v is not None}
