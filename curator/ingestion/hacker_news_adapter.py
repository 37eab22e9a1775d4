"""Hacker News adapter using the public Algolia search API (no auth)."""

import logging
from collections.abc import AsyncIterator
from typing import Any

from curator.ingestion.base_adapter import SourceAdapter
from curator.ingestion.http_client import HTTPClient
from curator.ingestion.schemas import NormalizedItem, parse_datetime
from curator.sources.schemas import Source, SourceKind
from curator.workflow.schemas import WorkflowType

logger = logging.getLogger(__name__)

HN_ITEM_URL = "https://news.ycombinator.com/item?id={}"


def build_description(hit: dict[str, Any]) -> str | None:
    """Join points, comments and author, e.g. "120 points | 45 comments | by pg"."""
    parts = []
    if hit.get("points"):
        parts.append(f"{hit['points']} points")
    if hit.get("num_comments"):
        parts.append(f"{hit['num_comments']} comments")
    if hit.get("author"):
        parts.append(f"by {hit['author']}")
    return " | ".join(parts) or None


class HackerNewsAdapter(SourceAdapter):
    """Config: ``query``, ``tags`` (default "story"), ``max_results`` (default 100)."""

    kind = SourceKind.HACKER_NEWS
    workflow_type = WorkflowType.HACKER_NEWS_INGESTION

    async def _fetch_raw(self, source: Source, client: HTTPClient) -> AsyncIterator[dict[str, Any]]:
        params = {
            "query": self.config_value(source, "query", ""),
            "tags": self.config_value(source, "tags", "story"),
        }
        response = await client.get(self._services.ingestion_config.hacker_news_url, params=params)
        hits = response.json().get("hits") or []
        for hit in hits[: self.max_results(source, 100)]:
            yield hit

    def _transform(self, source: Source, raw: dict[str, Any]) -> NormalizedItem | None:
        # Ask HN and similar posts have no external URL; use the discussion page
        url = raw.get("url")
        if not url and raw.get("objectID"):
            url = HN_ITEM_URL.format(raw["objectID"])
        if not url:
            return None

        tags = ["source:hacker-news"]
        tags.extend(f"hn:{tag}" for tag in raw.get("_tags") or [] if tag)

        metadata = {
            "object_id": raw.get("objectID"),
            "points": raw.get("points"),
            "num_comments": raw.get("num_comments"),
            "author": raw.get("author"),
            "discussion_url": HN_ITEM_URL.format(raw["objectID"]) if raw.get("objectID") else None,
        }

        return NormalizedItem(
            url=url,
            title=raw.get("title"),
            description=build_description(raw),
            author_name=raw.get("author"),
            published_at=parse_datetime(raw.get("created_at")),
            tags=tags,
            raw_payload={**raw, "_hn_metadata": {k: v for k, v in metadata.items() if v is not None}},
        )
