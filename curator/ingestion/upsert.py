"""
Upsert engine: the single entry point for turning a discovered URL into a
content record.

Records are keyed by (site_id, entry_kind, canonical URL). Concurrent
upserts of the same URL race on the unique constraint; the loser re-reads
the winner's row instead of failing, so callers always get exactly one
record back.
"""

import asyncio
import logging
import re
from typing import Any
from urllib.parse import urlsplit

from curator.entries.repository import EntryRepository
from curator.entries.schemas import Category, Entry, EntryKind
from curator.errors import ConfigurationError, DuplicateRecordError, InvalidURLError
from curator.ingestion.canonical import canonicalize
from curator.ingestion.config import IngestionConfig
from curator.sources.schemas import Source

logger = logging.getLogger(__name__)

_SEPARATORS_RE = re.compile(r"[/\-_]+")

# raw_payload["title_source"] for titles derived from the URL path
URL_TITLE_SOURCE = "url"


def title_from_url(url: str) -> str:
    """Placeholder title from the URL path until metadata scraping runs.

    "https://x.com/blog/my-first_post" -> "Blog my first post"
    """
    try:
        path = urlsplit(url).path
    except ValueError:
        return "Untitled"
    words = " ".join(_SEPARATORS_RE.sub(" ", path).split())
    if not words:
        return "Untitled"
    return words[0].upper() + words[1:].lower()


def has_placeholder_title(entry: Entry) -> bool:
    """True while the title is still the one derived from the URL."""
    if entry.raw_payload.get("title_source") == URL_TITLE_SOURCE:
        return True
    return bool(entry.title) and entry.title == title_from_url(entry.url_canonical)


class UpsertEngine:
    """
    Find-or-create content records by canonical URL.

    New records start pending and get a ``scrape_metadata`` job; existing
    records only have their source attached and never trigger a job.
    """

    def __init__(
        self,
        entries: EntryRepository,
        enqueuer: Any,
        config: IngestionConfig | None = None,
    ) -> None:
        self._entries = entries
        self._enqueuer = enqueuer
        self._config = config or IngestionConfig()

    async def upsert(
        self,
        tenant_id: int,
        category: Category,
        raw_url: str | None,
        source: Source | None = None,
        entry_kind: EntryKind = EntryKind.FEED,
    ) -> Entry | None:
        """Upsert one URL. Returns None for blank or invalid URLs."""
        entry, _created = await self.upsert_with_outcome(
            tenant_id, category, raw_url, source=source, entry_kind=entry_kind
        )
        return entry

    async def upsert_with_outcome(
        self,
        tenant_id: int,
        category: Category,
        raw_url: str | None,
        source: Source | None = None,
        entry_kind: EntryKind = EntryKind.FEED,
    ) -> tuple[Entry | None, bool]:
        """Like upsert(), also reporting whether a new record was created.

        Raises:
            ConfigurationError: if the category belongs to another tenant
            DuplicateRecordError: if the record can be neither created nor
                found after the configured number of attempts
        """
        if category.tenant_id != tenant_id:
            raise ConfigurationError(
                f"Category {category.id} belongs to tenant {category.tenant_id}, not {tenant_id}"
            )

        try:
            canonical = canonicalize(raw_url)
        except InvalidURLError as e:
            logger.warning("Skipping invalid URL %r: %s", raw_url, e)
            return None, False
        if canonical is None:
            logger.debug("Skipping blank URL")
            return None, False

        existing = await self._entries.find_by_canonical(category.site_id, entry_kind, canonical)
        if existing is not None:
            return await self._attach(existing, source), False

        return await self._create_with_retry(tenant_id, category, raw_url, canonical, source, entry_kind)

    async def _attach(self, entry: Entry, source: Source | None) -> Entry:
        """Point an existing entry at the source that just rediscovered it."""
        if source is not None and entry.source_id != source.id:
            await self._entries.attach_source(entry.id, source.id)
            entry.source_id = source.id
        return entry

    async def _create_with_retry(
        self,
        tenant_id: int,
        category: Category,
        raw_url: str,
        canonical: str,
        source: Source | None,
        entry_kind: EntryKind,
    ) -> tuple[Entry, bool]:
        ingested_via = source.kind.value if source is not None else "manual"
        candidate = Entry(
            tenant_id=tenant_id,
            site_id=category.site_id,
            category_id=category.id,
            source_id=source.id if source is not None else None,
            entry_kind=entry_kind,
            url_raw=raw_url.strip(),
            url_canonical=canonical,
            title=title_from_url(canonical),
            tags=[f"source:{ingested_via}"],
            raw_payload={
                "url": raw_url.strip(),
                "ingested_via": ingested_via,
                "title_source": URL_TITLE_SOURCE,
            },
        )

        attempts = self._config.upsert_max_attempts
        for attempt in range(attempts):
            try:
                created = await self._entries.insert(candidate)
            except DuplicateRecordError:
                winner = await self._entries.find_by_canonical(
                    category.site_id, entry_kind, canonical
                )
                if winner is not None:
                    logger.debug("Lost create race for %s, using entry %s", canonical, winner.id)
                    return await self._attach(winner, source), False
                await asyncio.sleep(0.1 * (attempt + 1))
                continue

            await self._enqueuer.enqueue("scrape_metadata", created.id)
            logger.info("Created entry %s for %s", created.id, canonical)
            return created, True

        raise DuplicateRecordError(
            f"Could not create or find entry for {canonical} after {attempts} attempts"
        )
