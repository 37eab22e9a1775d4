"""Metadata scraping: the first enrichment stage for a new entry."""

import logging
from typing import Any

from curator.enrichment.config import EnrichmentConfig
from curator.enrichment.page import Page, fetch_page
from curator.ingestion.http_client import HTTPClient, RetryConfig

logger = logging.getLogger(__name__)


class MetadataScraper:
    """Fetches an entry's page and reads title, description, image, site
    name, canonical link, body and publication date from it.

    Fetch failures surface as HTTPClientError, an ExternalServiceError the
    job policy retries.
    """

    def __init__(self, config: EnrichmentConfig | None = None) -> None:
        self._config = config or EnrichmentConfig()

    def _client(self) -> HTTPClient:
        return HTTPClient(
            retry_config=RetryConfig(max_retries=self._config.fetch_retries),
            timeout=self._config.fetch_timeout,
            user_agent=self._config.user_agent,
        )

    async def scrape(self, url: str) -> dict[str, Any]:
        async with self._client() as client:
            page = await fetch_page(client, url)
        return self.extract(page)

    def extract(self, page: Page) -> dict[str, Any]:
        """Entry fields readable from a page. Missing values are omitted."""
        limit = self._config.max_body_chars
        fields = {
            "title": page.best_title,
            "description": page.best_description,
            "image_url": page.best_image,
            "site_name": page.site_name,
            "published_at": page.published_at,
            "body_html": page.html[:limit] if page.html else None,
            "body_text": page.body_text[:limit] if page.body_text else None,
        }
        canonical = page.canonical_url
        if canonical:
            fields["canonical_url"] = canonical
        return {k: v for k, v in fields.items() if v is not None}
