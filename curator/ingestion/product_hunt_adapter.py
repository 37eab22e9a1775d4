"""Product Hunt adapter using the v2 GraphQL API with a bearer token."""

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from curator.ingestion.base_adapter import SourceAdapter
from curator.ingestion.http_client import HTTPClient
from curator.ingestion.schemas import NormalizedItem, parse_datetime, slugify
from curator.sources.schemas import Source, SourceKind
from curator.workflow.schemas import WorkflowType

logger = logging.getLogger(__name__)

_POST_FIELDS = """
    id
    name
    url
    website
    tagline
    description
    votesCount
    commentsCount
    createdAt
    thumbnail { url }
    topics { edges { node { name slug } } }
    makers { id name username }
"""


def posts_query(order: str, count: int) -> str:
    return f"{{ posts(first: {count}, order: {order}) {{ edges {{ node {{ {_POST_FIELDS} }} }} }} }}"


def topic_query(topic: str, count: int) -> str:
    return (
        f"{{ topic(slug: {json.dumps(topic)}) {{ posts(first: {count}) "
        f"{{ edges {{ node {{ {_POST_FIELDS} }} }} }} }} }}"
    )


class ProductHuntAdapter(SourceAdapter):
    """Config: ``access_token`` (required), ``feed_type`` (featured|newest), ``topic``, ``max_results``."""

    kind = SourceKind.PRODUCT_HUNT
    workflow_type = WorkflowType.PRODUCT_HUNT_INGESTION

    def build_query(self, source: Source) -> str:
        count = self.max_results(source, 50)
        topic = self.config_value(source, "topic")
        if topic:
            return topic_query(str(topic), count)
        if self.config_value(source, "feed_type", "featured") == "newest":
            return posts_query("NEWEST", count)
        return posts_query("RANKING", count)

    async def _fetch_raw(self, source: Source, client: HTTPClient) -> AsyncIterator[dict[str, Any]]:
        token = self.require_config(source, "access_token", "Product Hunt access_token")
        response = await client.post(
            self._services.ingestion_config.product_hunt_url,
            headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
            json_body={"query": self.build_query(source)},
        )
        data = response.json().get("data") or {}
        edges = (data.get("posts") or {}).get("edges")
        if edges is None:
            edges = ((data.get("topic") or {}).get("posts") or {}).get("edges") or []

        for edge in edges[: self.max_results(source, 50)]:
            node = edge.get("node")
            if node:
                yield node

    def _transform(self, source: Source, raw: dict[str, Any]) -> NormalizedItem | None:
        url = raw.get("url")
        if not url:
            return None

        tags = ["source:product-hunt"]
        for edge in (raw.get("topics") or {}).get("edges") or []:
            name = (edge.get("node") or {}).get("name")
            if name:
                tags.append(f"topic:{slugify(name)}")

        makers = raw.get("makers") or []
        metadata = {
            "id": raw.get("id"),
            "tagline": raw.get("tagline"),
            "votes_count": raw.get("votesCount"),
            "comments_count": raw.get("commentsCount"),
            "website": raw.get("website"),
            "makers": [m.get("username") or m.get("name") for m in makers],
        }

        return NormalizedItem(
            url=url,
            title=raw.get("name"),
            description=raw.get("tagline") or raw.get("description"),
            image_url=(raw.get("thumbnail") or {}).get("url"),
            author_name=makers[0].get("name") if makers else None,
            published_at=parse_datetime(raw.get("createdAt")),
            tags=tags,
            raw_payload={**raw, "_product_hunt_metadata": metadata},
        )
