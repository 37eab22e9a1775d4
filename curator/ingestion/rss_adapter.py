"""
RSS/Atom feed adapter.

Fetches the feed with the shared HTTP client, parses it with feedparser
and hands every item link to the upsert engine under the site's "news"
category. Metadata comes later from the enrichment pipeline, so only the
URL matters here.
"""

import logging
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from typing import Any

import feedparser

from curator.entries.schemas import Category
from curator.errors import ExternalServiceError, InvalidURLError
from curator.ingestion.base_adapter import SourceAdapter
from curator.ingestion.http_client import HTTPClient
from curator.ingestion.schemas import NormalizedItem, parse_datetime
from curator.sources.schemas import Source, SourceKind
from curator.workflow.schemas import WorkflowType

logger = logging.getLogger(__name__)

FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml"
NEWS_CATEGORY = "news"


def _entry_datetime(raw: dict[str, Any]) -> datetime | None:
    """feedparser normalises RFC 822 and ISO dates into UTC struct_time."""
    parsed = raw.get("published_parsed") or raw.get("updated_parsed")
    if parsed:
        return datetime(*parsed[:6], tzinfo=timezone.utc)
    return parse_datetime(raw.get("published") or raw.get("updated"))


class RSSAdapter(SourceAdapter):
    """Feed adapter. Config: ``url`` (required)."""

    kind = SourceKind.RSS
    workflow_type = WorkflowType.RSS_INGESTION

    def __init__(self, services: Any) -> None:
        super().__init__(services)
        self._category: Category | None = None

    async def _fetch_raw(self, source: Source, client: HTTPClient) -> AsyncIterator[dict[str, Any]]:
        feed_url = self.require_config(source, "url", "RSS feed URL")

        response = await client.get(feed_url, headers={"Accept": FEED_ACCEPT})
        feed = feedparser.parse(response.content)
        if feed.bozo and not feed.entries:
            raise ExternalServiceError(f"Unable to parse feed {feed_url}: {feed.get('bozo_exception')}")

        self._category = await self._services.categories.find_or_create(
            source.tenant_id, source.site_id, NEWS_CATEGORY
        )

        seen: set[str] = set()
        for entry in feed.entries:
            link = (entry.get("link") or entry.get("id") or "").strip()
            if link and link in seen:
                continue
            seen.add(link)
            yield entry

    def _transform(self, source: Source, raw: dict[str, Any]) -> NormalizedItem | None:
        link = raw.get("link") or raw.get("id")
        if not link:
            return None
        return NormalizedItem(
            url=link,
            title=raw.get("title"),
            description=raw.get("summary"),
            published_at=_entry_datetime(raw),
        )

    async def _persist(self, source: Source, item: NormalizedItem) -> bool:
        entry, created = await self._services.upsert.upsert_with_outcome(
            source.tenant_id, self._category, item.url, source=source
        )
        if entry is None:
            raise InvalidURLError(f"Unusable feed link {item.url!r}")
        return created
