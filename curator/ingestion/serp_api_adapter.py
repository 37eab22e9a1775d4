"""
Search-API adapters backed by SerpApi.

- GoogleNewsAdapter: ``google_news`` engine, reads ``news_results``
- RedditSearchAdapter: ``reddit_search`` engine, reads ``organic_results``

Both count against the global search-API quota in addition to the
per-source rate limit. ``api_key`` may list several comma-separated keys,
rotated per request.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

from curator.ingestion.base_adapter import SourceAdapter
from curator.ingestion.http_client import APIKeyRotator, HTTPClient
from curator.ingestion.schemas import NormalizedItem, parse_datetime, slugify
from curator.sources.schemas import Source, SourceKind
from curator.workflow.schemas import WorkflowType

logger = logging.getLogger(__name__)


class SerpApiAdapter(SourceAdapter):
    """Shared request handling for SerpApi engines."""

    workflow_type = WorkflowType.SERP_API_INGESTION
    engine: str
    results_key: str
    default_max_results: int

    def _search_params(self, source: Source) -> dict[str, Any]:
        raise NotImplementedError

    async def _fetch_raw(self, source: Source, client: HTTPClient) -> AsyncIterator[dict[str, Any]]:
        rotator = APIKeyRotator.from_value(self.require_config(source, "api_key", "SerpApi key"))
        params = {"engine": self.engine, **self._search_params(source)}

        response = await client.get(
            self._services.ingestion_config.serp_api_url,
            params=params,
            api_key_rotator=rotator,
            api_key_param="api_key",
        )
        results = response.json().get(self.results_key) or []
        for result in results[: self.max_results(source, self.default_max_results)]:
            yield result


class GoogleNewsAdapter(SerpApiAdapter):
    """Config: ``api_key`` (required), ``query``, ``location``, ``language``, ``max_results``."""

    kind = SourceKind.SERP_API_GOOGLE_NEWS
    engine = "google_news"
    results_key = "news_results"
    default_max_results = 100

    def _search_params(self, source: Source) -> dict[str, Any]:
        return {
            "q": self.config_value(source, "query", ""),
            "location": self.config_value(source, "location", "United States"),
            "hl": self.config_value(source, "language", "en"),
        }

    def _transform(self, source: Source, raw: dict[str, Any]) -> NormalizedItem | None:
        link = raw.get("link")
        if not link:
            return None

        # SerpApi reports the publisher as a string or as {"name": ...}
        publisher = raw.get("source")
        if isinstance(publisher, dict):
            publisher = publisher.get("name")
        tags = [f"source:{slugify(publisher)}"] if publisher else []

        return NormalizedItem(
            url=link,
            title=raw.get("title"),
            description=raw.get("snippet"),
            image_url=raw.get("thumbnail"),
            published_at=parse_datetime(raw.get("iso_date") or raw.get("date")),
            tags=tags,
            raw_payload=raw,
        )


class RedditSearchAdapter(SerpApiAdapter):
    """Config: ``api_key`` and ``query`` (required), ``subreddit``, ``max_results``."""

    kind = SourceKind.SERP_API_REDDIT
    engine = "reddit_search"
    results_key = "organic_results"
    default_max_results = 20

    def _search_params(self, source: Source) -> dict[str, Any]:
        params = {"q": self.require_config(source, "query", "Search query")}
        subreddit = self.config_value(source, "subreddit")
        if subreddit:
            params["subreddit"] = subreddit
        return params

    def _transform(self, source: Source, raw: dict[str, Any]) -> NormalizedItem | None:
        link = raw.get("link")
        if not link:
            return None

        # Self posts link back to reddit itself; link posts point elsewhere
        is_self_post = "reddit.com/r/" in link
        subreddit = raw.get("subreddit")

        tags = ["source:reddit"]
        if subreddit:
            name = subreddit[2:] if subreddit.startswith("r/") else subreddit
            tags.append(f"subreddit:{name.lower()}")
        tags.append("reddit:self_post" if is_self_post else "reddit:link_post")

        metadata = {
            "subreddit": subreddit,
            "author": raw.get("author"),
            "upvotes": raw.get("upvotes"),
            "comment_count": raw.get("comments"),
            "is_self_post": is_self_post,
        }
        payload = {**raw, "_reddit_metadata": {k: v for k, v in metadata.items() if v is not None}}

        return NormalizedItem(
            url=link,
            title=raw.get("title"),
            description=raw.get("snippet"),
            image_url=raw.get("thumbnail"),
            author_name=raw.get("author"),
            tags=tags,
            raw_payload=payload,
        )
