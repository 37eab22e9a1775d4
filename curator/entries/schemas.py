"""Data models for content records (entries) and categories."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class EntryKind(str, Enum):
    """The two record types sharing one enrichment lifecycle."""

    FEED = "feed"
    DIRECTORY = "directory"


class EnrichmentStatus(str, Enum):
    PENDING = "pending"
    ENRICHING = "enriching"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class Category:
    """A site category entries are filed under (e.g. "news")."""

    tenant_id: int
    site_id: int
    key: str
    name: str = ""
    id: int | None = None


@dataclass
class Entry:
    """A canonical content record.

    Unique on (site_id, entry_kind, url_canonical). Enrichment stages fill
    the metadata, AI and screenshot fields; the pipeline never deletes rows.
    """

    tenant_id: int
    site_id: int
    url_raw: str
    url_canonical: str
    entry_kind: EntryKind = EntryKind.FEED
    category_id: int | None = None
    source_id: int | None = None
    title: str | None = None
    description: str | None = None
    image_url: str | None = None
    og_image_url: str | None = None
    site_name: str | None = None
    author_name: str | None = None
    published_at: datetime | None = None
    body_html: str | None = None
    body_text: str | None = None
    word_count: int | None = None
    read_time_minutes: int | None = None
    favicon_url: str | None = None
    domain: str | None = None
    tags: list[str] = field(default_factory=list)
    raw_payload: dict = field(default_factory=dict)
    enrichment_status: EnrichmentStatus = EnrichmentStatus.PENDING
    enrichment_started_at: datetime | None = None
    enriched_at: datetime | None = None
    enrichment_errors: list[dict] = field(default_factory=list)
    ai_summary: str | None = None
    why_it_matters: str | None = None
    ai_suggested_tags: list[str] = field(default_factory=list)
    key_takeaways: list[str] = field(default_factory=list)
    audience_tags: list[str] = field(default_factory=list)
    quality_score: float | None = None
    editorialised_at: datetime | None = None
    screenshot_url: str | None = None
    screenshot_captured_at: datetime | None = None
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def editorialised(self) -> bool:
        return self.editorialised_at is not None

    @property
    def has_screenshot(self) -> bool:
        return bool(self.screenshot_url)

    @property
    def text_for_editorialisation(self) -> str:
        """Best available extracted text: body, else description."""
        return (self.body_text or self.description or "").strip()


# Columns the pipeline is allowed to write through update_fields().
MUTABLE_FIELDS = frozenset({
    "source_id",
    "title",
    "description",
    "image_url",
    "og_image_url",
    "site_name",
    "author_name",
    "published_at",
    "body_html",
    "body_text",
    "word_count",
    "read_time_minutes",
    "favicon_url",
    "domain",
    "tags",
    "raw_payload",
    "ai_summary",
    "why_it_matters",
    "ai_suggested_tags",
    "key_takeaways",
    "audience_tags",
    "quality_score",
    "editorialised_at",
    "screenshot_url",
    "screenshot_captured_at",
})


def _is_blank(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return not value
    return False


def merge_non_blank(entry: Entry, scraped: dict) -> dict:
    """Fields from ``scraped`` that may be written without clobbering data.

    Only fields that are blank on the entry and non-blank in the scrape are
    returned, so an existing title (or any other value) is never replaced.
    """
    updates = {}
    for name, value in scraped.items():
        if name not in MUTABLE_FIELDS or _is_blank(value):
            continue
        if _is_blank(getattr(entry, name, None)):
            updates[name] = value
    return updates
