"""Database repositories for sources and import runs."""

import logging
from datetime import datetime

from curator.sources.schemas import ImportRun, ImportRunStatus, Source, SourceKind
from curator.storage.database import Database, rows_affected

logger = logging.getLogger(__name__)

_CREATE_SOURCES_SQL = """
CREATE TABLE IF NOT EXISTS sources (
    id                         BIGSERIAL PRIMARY KEY,
    tenant_id                  BIGINT NOT NULL,
    site_id                    BIGINT NOT NULL,
    name                       TEXT NOT NULL,
    kind                       TEXT NOT NULL,
    enabled                    BOOLEAN NOT NULL DEFAULT TRUE,
    config                     JSONB NOT NULL DEFAULT '{}',
    schedule_interval_seconds  INTEGER,
    last_run_at                TIMESTAMPTZ,
    last_status                TEXT,
    created_at                 TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at                 TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_sources_kind_enabled
    ON sources(kind, enabled) WHERE enabled = TRUE;
CREATE INDEX IF NOT EXISTS idx_sources_tenant
    ON sources(tenant_id);
"""

_CREATE_IMPORT_RUNS_SQL = """
CREATE TABLE IF NOT EXISTS import_runs (
    id             BIGSERIAL PRIMARY KEY,
    source_id      BIGINT NOT NULL REFERENCES sources(id) ON DELETE CASCADE,
    status         TEXT NOT NULL DEFAULT 'running',
    started_at     TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    completed_at   TIMESTAMPTZ,
    items_created  INTEGER NOT NULL DEFAULT 0,
    items_updated  INTEGER NOT NULL DEFAULT 0,
    items_failed   INTEGER NOT NULL DEFAULT 0,
    items_count    INTEGER NOT NULL DEFAULT 0,
    error_message  TEXT
);

CREATE INDEX IF NOT EXISTS idx_import_runs_source_started
    ON import_runs(source_id, started_at DESC);
"""

_INSERT_SOURCE_SQL = """
INSERT INTO sources (tenant_id, site_id, name, kind, enabled, config, schedule_interval_seconds)
VALUES ($1, $2, $3, $4, $5, $6, $7)
RETURNING *
"""

_INSERT_RUN_SQL = """
INSERT INTO import_runs (source_id, status, started_at)
VALUES ($1, 'running', NOW())
RETURNING *
"""

_COMPLETE_RUN_SQL = """
UPDATE import_runs SET
    status = 'completed',
    completed_at = NOW(),
    items_created = $2,
    items_updated = $3,
    items_failed = $4,
    items_count = $2 + $3 + $4
WHERE id = $1 AND status = 'running'
RETURNING *
"""

_FAIL_RUN_SQL = """
UPDATE import_runs SET
    status = 'failed',
    completed_at = NOW(),
    error_message = $2
WHERE id = $1 AND status = 'running'
RETURNING *
"""


def _record_to_source(record) -> Source:
    """Convert an asyncpg Record to a Source dataclass."""
    return Source(
        id=record["id"],
        tenant_id=record["tenant_id"],
        site_id=record["site_id"],
        name=record["name"],
        kind=SourceKind(record["kind"]),
        enabled=record["enabled"],
        config=dict(record["config"]) if record["config"] else {},
        schedule_interval_seconds=record["schedule_interval_seconds"],
        last_run_at=record["last_run_at"],
        last_status=record["last_status"],
        created_at=record["created_at"],
        updated_at=record["updated_at"],
    )


def _record_to_run(record) -> ImportRun:
    """Convert an asyncpg Record to an ImportRun dataclass."""
    return ImportRun(
        id=record["id"],
        source_id=record["source_id"],
        status=ImportRunStatus(record["status"]),
        started_at=record["started_at"],
        completed_at=record["completed_at"],
        items_created=record["items_created"],
        items_updated=record["items_updated"],
        items_failed=record["items_failed"],
        items_count=record["items_count"],
        error_message=record["error_message"],
    )


class SourcesRepository:
    """CRUD operations for the sources table."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the sources table and indexes (idempotent)."""
        await self._db.execute(_CREATE_SOURCES_SQL)
        logger.info("Sources table ensured")

    async def create(self, source: Source) -> Source:
        row = await self._db.fetchrow(
            _INSERT_SOURCE_SQL,
            source.tenant_id,
            source.site_id,
            source.name,
            source.kind.value,
            source.enabled,
            source.config,
            source.schedule_interval_seconds,
        )
        return _record_to_source(row)

    async def get_by_id(self, source_id: int) -> Source | None:
        row = await self._db.fetchrow("SELECT * FROM sources WHERE id = $1", source_id)
        return _record_to_source(row) if row else None

    async def list_enabled(
        self,
        kinds: list[SourceKind] | None = None,
        tenant_id: int | None = None,
    ) -> list[Source]:
        """Enabled sources, optionally filtered by kind and tenant."""
        conditions = ["enabled = TRUE"]
        params: list = []
        idx = 1

        if kinds:
            conditions.append(f"kind = ANY(${idx}::text[])")
            params.append([k.value for k in kinds])
            idx += 1

        if tenant_id is not None:
            conditions.append(f"tenant_id = ${idx}")
            params.append(tenant_id)
            idx += 1

        rows = await self._db.fetch(
            f"SELECT * FROM sources WHERE {' AND '.join(conditions)} ORDER BY id",
            *params,
        )
        return [_record_to_source(r) for r in rows]

    async def update_run_status(self, source_id: int, status: str) -> None:
        """Stamp last_run_at and last_status after an adapter invocation."""
        await self._db.execute(
            """
            UPDATE sources SET last_run_at = NOW(), last_status = $2, updated_at = NOW()
            WHERE id = $1
            """,
            source_id, status,
        )

    async def set_enabled(self, source_id: int, enabled: bool) -> bool:
        result = await self._db.execute(
            "UPDATE sources SET enabled = $2, updated_at = NOW() WHERE id = $1",
            source_id, enabled,
        )
        return rows_affected(result) == 1


class ImportRunRepository:
    """Import run tracker: one row per adapter invocation.

    Finalisation is guarded by ``status = 'running'`` so a terminal run is
    never rewritten.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the import_runs table and indexes (idempotent)."""
        await self._db.execute(_CREATE_IMPORT_RUNS_SQL)
        logger.info("Import runs table ensured")

    async def create_for_source(self, source_id: int) -> ImportRun:
        row = await self._db.fetchrow(_INSERT_RUN_SQL, source_id)
        return _record_to_run(row)

    async def mark_completed(
        self,
        run_id: int,
        items_created: int = 0,
        items_updated: int = 0,
        items_failed: int = 0,
    ) -> ImportRun | None:
        """Finalise a running run; returns None if it was already terminal."""
        row = await self._db.fetchrow(
            _COMPLETE_RUN_SQL, run_id, items_created, items_updated, items_failed
        )
        if row is None:
            logger.warning("Import run %s already finalised, not completing", run_id)
            return None
        return _record_to_run(row)

    async def mark_failed(self, run_id: int, error_message: str) -> ImportRun | None:
        row = await self._db.fetchrow(_FAIL_RUN_SQL, run_id, error_message)
        if row is None:
            logger.warning("Import run %s already finalised, not failing", run_id)
            return None
        return _record_to_run(row)

    async def count_started_since(self, source_id: int, since: datetime) -> int:
        """Runs for one source whose started_at falls at or after ``since``."""
        count = await self._db.fetchval(
            "SELECT COUNT(*) FROM import_runs WHERE source_id = $1 AND started_at >= $2",
            source_id, since,
        )
        return count or 0

    async def count_started_since_for_kinds(
        self, kinds: list[SourceKind], since: datetime
    ) -> int:
        """Runs across all sources of the given kinds since a timestamp."""
        count = await self._db.fetchval(
            """
            SELECT COUNT(*) FROM import_runs r
            JOIN sources s ON s.id = r.source_id
            WHERE s.kind = ANY($1::text[]) AND r.started_at >= $2
            """,
            [k.value for k in kinds], since,
        )
        return count or 0

    async def recent_for_source(self, source_id: int, limit: int = 3) -> list[ImportRun]:
        rows = await self._db.fetch(
            """
            SELECT * FROM import_runs WHERE source_id = $1
            ORDER BY started_at DESC LIMIT $2
            """,
            source_id, limit,
        )
        return [_record_to_run(r) for r in rows]
