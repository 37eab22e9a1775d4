"""Database repositories for entries and categories."""

import logging
from datetime import datetime
from typing import Any

import asyncpg

from curator.entries.schemas import (
    MUTABLE_FIELDS,
    Category,
    EnrichmentStatus,
    Entry,
    EntryKind,
)
from curator.errors import DuplicateRecordError
from curator.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_CATEGORIES_SQL = """
CREATE TABLE IF NOT EXISTS categories (
    id         BIGSERIAL PRIMARY KEY,
    tenant_id  BIGINT NOT NULL,
    site_id    BIGINT NOT NULL,
    key        TEXT NOT NULL,
    name       TEXT NOT NULL DEFAULT '',
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (site_id, key)
);
"""

_CREATE_ENTRIES_SQL = """
CREATE TABLE IF NOT EXISTS entries (
    id                      BIGSERIAL PRIMARY KEY,
    tenant_id               BIGINT NOT NULL,
    site_id                 BIGINT NOT NULL,
    category_id             BIGINT REFERENCES categories(id) ON DELETE SET NULL,
    source_id               BIGINT REFERENCES sources(id) ON DELETE SET NULL,
    entry_kind              TEXT NOT NULL DEFAULT 'feed',
    url_raw                 TEXT NOT NULL,
    url_canonical           TEXT NOT NULL,
    title                   TEXT,
    description             TEXT,
    image_url               TEXT,
    og_image_url            TEXT,
    site_name               TEXT,
    author_name             TEXT,
    published_at            TIMESTAMPTZ,
    body_html               TEXT,
    body_text               TEXT,
    word_count              INTEGER,
    read_time_minutes       INTEGER,
    favicon_url             TEXT,
    domain                  TEXT,
    tags                    TEXT[] NOT NULL DEFAULT '{}',
    raw_payload             JSONB NOT NULL DEFAULT '{}',
    enrichment_status       TEXT NOT NULL DEFAULT 'pending',
    enrichment_started_at   TIMESTAMPTZ,
    enriched_at             TIMESTAMPTZ,
    enrichment_errors       JSONB NOT NULL DEFAULT '[]',
    ai_summary              TEXT,
    why_it_matters          TEXT,
    ai_suggested_tags       TEXT[] NOT NULL DEFAULT '{}',
    key_takeaways           TEXT[] NOT NULL DEFAULT '{}',
    audience_tags           TEXT[] NOT NULL DEFAULT '{}',
    quality_score           REAL,
    editorialised_at        TIMESTAMPTZ,
    screenshot_url          TEXT,
    screenshot_captured_at  TIMESTAMPTZ,
    created_at              TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at              TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (site_id, entry_kind, url_canonical)
);

CREATE INDEX IF NOT EXISTS idx_entries_status
    ON entries(enrichment_status);
CREATE INDEX IF NOT EXISTS idx_entries_enriched_at
    ON entries(enriched_at) WHERE enrichment_status = 'complete';
CREATE INDEX IF NOT EXISTS idx_entries_source
    ON entries(source_id);
"""

_INSERT_ENTRY_SQL = """
INSERT INTO entries (
    tenant_id, site_id, category_id, source_id, entry_kind, url_raw, url_canonical,
    title, description, image_url, published_at, tags, raw_payload, author_name
)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14)
RETURNING *
"""

# xmax = 0 only for freshly inserted rows, which lets the direct path
# report created vs updated from one statement.
_SAVE_LISTING_SQL = """
INSERT INTO entries (
    tenant_id, site_id, category_id, source_id, entry_kind, url_raw, url_canonical,
    title, description, image_url, published_at, tags, raw_payload, author_name
)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14)
ON CONFLICT (site_id, entry_kind, url_canonical) DO UPDATE SET
    source_id = EXCLUDED.source_id,
    url_raw = EXCLUDED.url_raw,
    title = COALESCE(EXCLUDED.title, entries.title),
    description = COALESCE(EXCLUDED.description, entries.description),
    image_url = COALESCE(EXCLUDED.image_url, entries.image_url),
    published_at = COALESCE(EXCLUDED.published_at, entries.published_at),
    author_name = COALESCE(EXCLUDED.author_name, entries.author_name),
    tags = ARRAY(SELECT DISTINCT unnest(entries.tags || EXCLUDED.tags)),
    raw_payload = EXCLUDED.raw_payload,
    updated_at = NOW()
RETURNING *, (xmax = 0) AS inserted
"""

_MARK_STARTED_SQL = """
UPDATE entries SET
    enrichment_status = 'enriching',
    enrichment_started_at = NOW(),
    updated_at = NOW()
WHERE id = $1
RETURNING *
"""

_MARK_COMPLETE_SQL = """
UPDATE entries SET
    enrichment_status = 'complete',
    enriched_at = NOW(),
    updated_at = NOW()
WHERE id = $1
RETURNING *
"""

_MARK_FAILED_SQL = """
UPDATE entries SET
    enrichment_status = 'failed',
    enrichment_errors = enrichment_errors || jsonb_build_array(
        jsonb_build_object('error', $2::text, 'at', NOW())
    ),
    updated_at = NOW()
WHERE id = $1
RETURNING *
"""

_MARK_PENDING_SQL = """
UPDATE entries SET
    enrichment_status = 'pending',
    enrichment_started_at = NULL,
    updated_at = NOW()
WHERE id = $1 AND enrichment_status = 'enriching'
RETURNING *
"""

_RESET_STALE_SQL = """
UPDATE entries SET
    enrichment_status = 'pending',
    enrichment_errors = '[]',
    enrichment_started_at = NULL,
    updated_at = NOW()
WHERE id IN (
    SELECT id FROM entries
    WHERE enrichment_status = 'complete' AND enriched_at < $1
    ORDER BY enriched_at
    LIMIT $2
)
RETURNING id
"""


def _record_to_category(record) -> Category:
    return Category(
        id=record["id"],
        tenant_id=record["tenant_id"],
        site_id=record["site_id"],
        key=record["key"],
        name=record["name"],
    )


def _record_to_entry(record) -> Entry:
    """Convert an asyncpg Record to an Entry dataclass."""
    return Entry(
        id=record["id"],
        tenant_id=record["tenant_id"],
        site_id=record["site_id"],
        category_id=record["category_id"],
        source_id=record["source_id"],
        entry_kind=EntryKind(record["entry_kind"]),
        url_raw=record["url_raw"],
        url_canonical=record["url_canonical"],
        title=record["title"],
        description=record["description"],
        image_url=record["image_url"],
        og_image_url=record["og_image_url"],
        site_name=record["site_name"],
        author_name=record["author_name"],
        published_at=record["published_at"],
        body_html=record["body_html"],
        body_text=record["body_text"],
        word_count=record["word_count"],
        read_time_minutes=record["read_time_minutes"],
        favicon_url=record["favicon_url"],
        domain=record["domain"],
        tags=list(record["tags"] or []),
        raw_payload=dict(record["raw_payload"]) if record["raw_payload"] else {},
        enrichment_status=EnrichmentStatus(record["enrichment_status"]),
        enrichment_started_at=record["enrichment_started_at"],
        enriched_at=record["enriched_at"],
        enrichment_errors=list(record["enrichment_errors"] or []),
        ai_summary=record["ai_summary"],
        why_it_matters=record["why_it_matters"],
        ai_suggested_tags=list(record["ai_suggested_tags"] or []),
        key_takeaways=list(record["key_takeaways"] or []),
        audience_tags=list(record["audience_tags"] or []),
        quality_score=record["quality_score"],
        editorialised_at=record["editorialised_at"],
        screenshot_url=record["screenshot_url"],
        screenshot_captured_at=record["screenshot_captured_at"],
        created_at=record["created_at"],
        updated_at=record["updated_at"],
    )


def _insert_params(entry: Entry) -> tuple:
    return (
        entry.tenant_id,
        entry.site_id,
        entry.category_id,
        entry.source_id,
        entry.entry_kind.value,
        entry.url_raw,
        entry.url_canonical,
        entry.title,
        entry.description,
        entry.image_url,
        entry.published_at,
        entry.tags,
        entry.raw_payload,
        entry.author_name,
    )


class CategoryRepository:
    """Lookup and lazy creation of site categories."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        await self._db.execute(_CREATE_CATEGORIES_SQL)
        logger.info("Categories table ensured")

    async def find_or_create(
        self, tenant_id: int, site_id: int, key: str, name: str | None = None
    ) -> Category:
        row = await self._db.fetchrow(
            """
            INSERT INTO categories (tenant_id, site_id, key, name)
            VALUES ($1, $2, $3, $4)
            ON CONFLICT (site_id, key) DO UPDATE SET key = EXCLUDED.key
            RETURNING *
            """,
            tenant_id, site_id, key, name or key.title(),
        )
        return _record_to_category(row)

    async def get_by_id(self, category_id: int) -> Category | None:
        row = await self._db.fetchrow("SELECT * FROM categories WHERE id = $1", category_id)
        return _record_to_category(row) if row else None


class EntryRepository:
    """Persistence for entries and their enrichment state transitions."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the entries table and indexes (idempotent)."""
        await self._db.execute(_CREATE_ENTRIES_SQL)
        logger.info("Entries table ensured")

    async def get_by_id(self, entry_id: int) -> Entry | None:
        row = await self._db.fetchrow("SELECT * FROM entries WHERE id = $1", entry_id)
        return _record_to_entry(row) if row else None

    async def find_by_canonical(
        self, site_id: int, entry_kind: EntryKind, url_canonical: str
    ) -> Entry | None:
        row = await self._db.fetchrow(
            """
            SELECT * FROM entries
            WHERE site_id = $1 AND entry_kind = $2 AND url_canonical = $3
            """,
            site_id, entry_kind.value, url_canonical,
        )
        return _record_to_entry(row) if row else None

    async def insert(self, entry: Entry) -> Entry:
        """Insert a new entry.

        Raises:
            DuplicateRecordError: if the canonical URL already exists for the site.
        """
        try:
            row = await self._db.fetchrow(_INSERT_ENTRY_SQL, *_insert_params(entry))
        except asyncpg.UniqueViolationError as e:
            raise DuplicateRecordError(str(e)) from e
        return _record_to_entry(row)

    async def save_listing(self, entry: Entry) -> tuple[Entry, bool]:
        """Create or update by canonical URL. Returns (entry, created)."""
        row = await self._db.fetchrow(_SAVE_LISTING_SQL, *_insert_params(entry))
        return _record_to_entry(row), bool(row["inserted"])

    async def attach_source(self, entry_id: int, source_id: int) -> None:
        await self._db.execute(
            "UPDATE entries SET source_id = $2, updated_at = NOW() WHERE id = $1",
            entry_id, source_id,
        )

    async def update_fields(self, entry_id: int, fields: dict[str, Any]) -> None:
        """Write a whitelisted set of columns. Unknown columns raise ValueError."""
        if not fields:
            return
        unknown = set(fields) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update entry columns: {sorted(unknown)}")

        names = sorted(fields)
        assignments = ", ".join(f"{name} = ${i + 2}" for i, name in enumerate(names))
        await self._db.execute(
            f"UPDATE entries SET {assignments}, updated_at = NOW() WHERE id = $1",
            entry_id, *(fields[name] for name in names),
        )

    # ── Enrichment state transitions ────────────────────────────

    async def mark_enrichment_started(self, entry_id: int) -> Entry | None:
        """Move to enriching. Prior enrichment errors are kept."""
        row = await self._db.fetchrow(_MARK_STARTED_SQL, entry_id)
        return _record_to_entry(row) if row else None

    async def mark_enrichment_complete(self, entry_id: int) -> Entry | None:
        row = await self._db.fetchrow(_MARK_COMPLETE_SQL, entry_id)
        return _record_to_entry(row) if row else None

    async def mark_enrichment_failed(self, entry_id: int, error: str) -> Entry | None:
        """Move to failed and append ``error`` to the error history."""
        row = await self._db.fetchrow(_MARK_FAILED_SQL, entry_id, error)
        return _record_to_entry(row) if row else None

    async def mark_enrichment_pending(self, entry_id: int) -> Entry | None:
        """Hand an enriching entry back to pending; None if it was not enriching."""
        row = await self._db.fetchrow(_MARK_PENDING_SQL, entry_id)
        return _record_to_entry(row) if row else None

    async def reset_stale(self, enriched_before: datetime, limit: int) -> list[int]:
        """Reset complete entries enriched before a cutoff back to pending."""
        rows = await self._db.fetch(_RESET_STALE_SQL, enriched_before, limit)
        return [r["id"] for r in rows]

    # ── Backlog queries ─────────────────────────────────────────

    async def list_ids_by_status(
        self,
        status: EnrichmentStatus,
        tenant_id: int | None = None,
        limit: int = 500,
    ) -> list[int]:
        rows = await self._db.fetch(
            """
            SELECT id FROM entries
            WHERE enrichment_status = $1 AND ($2::bigint IS NULL OR tenant_id = $2)
            ORDER BY created_at
            LIMIT $3
            """,
            status.value, tenant_id, limit,
        )
        return [r["id"] for r in rows]

    async def list_unedited_ids(
        self, tenant_id: int | None = None, limit: int = 500
    ) -> list[int]:
        """Entries from editorialising sources that have no AI summary yet."""
        rows = await self._db.fetch(
            """
            SELECT e.id FROM entries e
            JOIN sources s ON s.id = e.source_id
            WHERE e.editorialised_at IS NULL
              AND e.enrichment_status IN ('enriching', 'complete')
              AND (s.config->>'editorialise')::boolean IS TRUE
              AND ($1::bigint IS NULL OR e.tenant_id = $1)
            ORDER BY e.created_at
            LIMIT $2
            """,
            tenant_id, limit,
        )
        return [r["id"] for r in rows]

    async def count_by_status(self) -> dict[str, int]:
        rows = await self._db.fetch(
            "SELECT enrichment_status, COUNT(*) AS n FROM entries GROUP BY enrichment_status"
        )
        return {r["enrichment_status"]: r["n"] for r in rows}
