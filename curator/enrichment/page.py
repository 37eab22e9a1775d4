"""
Fetched HTML pages and the metadata readable from them.

Metadata is read in order of reliability: JSON-LD (schema.org) first for
dates, then OpenGraph/Twitter tags, then plain meta tags and the <title>.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from functools import cached_property
from typing import Any
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from curator.ingestion.canonical import domain_of, try_canonicalize
from curator.ingestion.http_client import HTTPClient
from curator.ingestion.schemas import parse_datetime

logger = logging.getLogger(__name__)

# JSON-LD @type values that describe the page's main content
ARTICLE_TYPES = frozenset({
    "newsarticle",
    "article",
    "reportagenewsarticle",
    "blogposting",
    "webpage",
    "socialmediaposting",
})

_PUBLISHED_META = (
    ("property", "article:published_time"),
    ("property", "og:published_time"),
    ("name", "date"),
    ("name", "publishdate"),
)


@dataclass
class Page:
    """A fetched HTML document. ``url`` is the final URL after redirects."""

    url: str
    html: str
    status_code: int = 200
    headers: dict[str, str] = field(default_factory=dict)

    @cached_property
    def soup(self) -> BeautifulSoup:
        return BeautifulSoup(self.html, "html.parser")

    # ── Meta tags ───────────────────────────────────────────────

    def meta(self, attr: str, key: str) -> str | None:
        """Content of <meta {attr}="{key}">, matched case-insensitively."""
        key = key.lower()
        for tag in self.soup.find_all("meta"):
            value = tag.get(attr)
            if value and value.strip().lower() == key:
                content = (tag.get("content") or "").strip()
                if content:
                    return content
        return None

    def _first_meta(self, *candidates: tuple[str, str]) -> str | None:
        for attr, key in candidates:
            value = self.meta(attr, key)
            if value:
                return value
        return None

    @property
    def title(self) -> str | None:
        if self.soup.title and self.soup.title.string:
            return self.soup.title.string.strip() or None
        return None

    @property
    def best_title(self) -> str | None:
        return self._first_meta(("property", "og:title"), ("name", "twitter:title")) or self.title

    @property
    def description(self) -> str | None:
        return self.meta("name", "description")

    @property
    def best_description(self) -> str | None:
        return (
            self._first_meta(("property", "og:description"), ("name", "twitter:description"))
            or self.description
        )

    @property
    def best_image(self) -> str | None:
        image = self._first_meta(
            ("property", "og:image"),
            ("property", "og:image:url"),
            ("name", "twitter:image"),
        )
        return urljoin(self.url, image) if image else None

    @property
    def site_name(self) -> str | None:
        return self.meta("property", "og:site_name") or self.host

    @property
    def host(self) -> str | None:
        return domain_of(self.url)

    @property
    def author(self) -> str | None:
        author = self._first_meta(("name", "author"), ("property", "article:author"))
        if author:
            return author
        for item in self.json_ld_items:
            name = _author_name(item.get("author"))
            if name:
                return name
        return None

    @property
    def canonical_url(self) -> str | None:
        for link in self.soup.find_all("link", href=True):
            rel = link.get("rel") or []
            if isinstance(rel, str):
                rel = rel.split()
            if "canonical" in (r.lower() for r in rel):
                return try_canonicalize(urljoin(self.url, link["href"]))
        return None

    @property
    def favicon_url(self) -> str | None:
        tile = self.meta("name", "msapplication-TileImage")
        if tile:
            return urljoin(self.url, tile)
        for link in self.soup.find_all("link", href=True):
            rel = link.get("rel") or []
            if isinstance(rel, str):
                rel = rel.split()
            if "icon" in (r.lower() for r in rel):
                return urljoin(self.url, link["href"])
        return None

    # ── Structured data ─────────────────────────────────────────

    @cached_property
    def json_ld_items(self) -> list[dict[str, Any]]:
        """Article-like JSON-LD objects. Malformed blocks are skipped."""
        items: list[dict[str, Any]] = []
        for script in self.soup.find_all("script", attrs={"type": "application/ld+json"}):
            try:
                data = json.loads(script.string or script.get_text() or "")
            except (json.JSONDecodeError, TypeError):
                continue
            candidates = data if isinstance(data, list) else [data]
            for item in candidates:
                if isinstance(item, dict) and "@graph" in item:
                    candidates.extend(g for g in item["@graph"] if isinstance(g, dict))
                    continue
                if not isinstance(item, dict):
                    continue
                item_type = item.get("@type", "")
                if isinstance(item_type, list):
                    item_type = item_type[0] if item_type else ""
                if item_type and str(item_type).lower() not in ARTICLE_TYPES:
                    continue
                items.append(item)
        return items

    @property
    def published_at(self) -> datetime | None:
        """Meta tag date first, then JSON-LD datePublished."""
        parsed = parse_datetime(self._first_meta(*_PUBLISHED_META))
        if parsed is not None:
            return parsed
        for item in self.json_ld_items:
            parsed = parse_datetime(item.get("datePublished") or item.get("dateCreated"))
            if parsed is not None:
                return parsed
        return None

    # ── Body ────────────────────────────────────────────────────

    @cached_property
    def body_text(self) -> str:
        # Separate parse: stripping scripts must not hide JSON-LD from self.soup
        soup = BeautifulSoup(self.html, "html.parser")
        body = soup.body or soup
        for tag in body.find_all(["script", "style", "noscript", "template"]):
            tag.decompose()
        return " ".join(body.get_text(" ").split())

    @property
    def word_count(self) -> int:
        return len(self.body_text.split()) if self.body_text else 0


def _author_name(author: Any) -> str | None:
    """Name from a JSON-LD author field (string, object or list)."""
    if isinstance(author, str):
        return author.strip() or None
    if isinstance(author, dict):
        name = author.get("name")
        return name.strip() if isinstance(name, str) and name.strip() else None
    if isinstance(author, list):
        names = [n for n in (_author_name(a) for a in author) if n]
        return ", ".join(names) or None
    return None


async def fetch_page(client: HTTPClient, url: str) -> Page:
    """GET ``url`` and wrap the response.

    Raises:
        HTTPClientError: on transport errors or non-2xx responses
    """
    response = await client.get(
        url, headers={"Accept": "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8"}
    )
    return Page(
        url=str(response.url),
        html=response.text,
        status_code=response.status_code,
        headers=dict(response.headers),
    )
