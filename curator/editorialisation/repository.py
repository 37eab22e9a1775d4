"""Database repository for editorialisation records."""

import logging
from datetime import datetime
from typing import Any

from curator.editorialisation.schemas import Editorialisation, EditorialisationStatus
from curator.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS editorialisations (
    id                    BIGSERIAL PRIMARY KEY,
    entry_id              BIGINT NOT NULL REFERENCES entries(id) ON DELETE CASCADE,
    tenant_id             BIGINT NOT NULL,
    site_id               BIGINT NOT NULL,
    status                TEXT NOT NULL DEFAULT 'pending',
    prompt_version        TEXT NOT NULL,
    prompt_text           TEXT NOT NULL,
    raw_response          TEXT,
    parsed_response       JSONB NOT NULL DEFAULT '{}',
    tokens_in             INTEGER,
    tokens_out            INTEGER,
    tokens_used           INTEGER,
    estimated_cost_cents  NUMERIC(12, 4),
    model_name            TEXT,
    duration_ms           INTEGER,
    error_message         TEXT,
    created_at            TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at            TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_editorialisations_entry
    ON editorialisations(entry_id);
CREATE INDEX IF NOT EXISTS idx_editorialisations_tenant_created
    ON editorialisations(tenant_id, created_at) WHERE status = 'completed';
"""

_COMPLETE_SQL = """
UPDATE editorialisations SET
    status = 'completed',
    raw_response = $2,
    parsed_response = $3,
    tokens_in = $4,
    tokens_out = $5,
    tokens_used = $6,
    model_name = $7,
    duration_ms = $8,
    updated_at = NOW()
WHERE id = $1 AND status = 'pending'
RETURNING *
"""

_FAIL_SQL = """
UPDATE editorialisations SET
    status = 'failed',
    error_message = $2,
    raw_response = COALESCE($3, raw_response),
    updated_at = NOW()
WHERE id = $1 AND status = 'pending'
RETURNING *
"""


def _record_to_editorialisation(record) -> Editorialisation:
    cost = record["estimated_cost_cents"]
    return Editorialisation(
        id=record["id"],
        entry_id=record["entry_id"],
        tenant_id=record["tenant_id"],
        site_id=record["site_id"],
        status=EditorialisationStatus(record["status"]),
        prompt_version=record["prompt_version"],
        prompt_text=record["prompt_text"],
        raw_response=record["raw_response"],
        parsed_response=dict(record["parsed_response"] or {}),
        tokens_in=record["tokens_in"],
        tokens_out=record["tokens_out"],
        tokens_used=record["tokens_used"],
        estimated_cost_cents=float(cost) if cost is not None else None,
        model_name=record["model_name"],
        duration_ms=record["duration_ms"],
        error_message=record["error_message"],
        created_at=record["created_at"],
    )


class EditorialisationRepository:
    """Persistence for editorialisation records.

    Terminal transitions are guarded by ``status = 'pending'``; calling
    them on a completed or failed record returns None and changes nothing.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("Editorialisations table ensured")

    async def create_pending(self, record: Editorialisation) -> Editorialisation:
        row = await self._db.fetchrow(
            """
            INSERT INTO editorialisations (
                entry_id, tenant_id, site_id, status, prompt_version, prompt_text
            )
            VALUES ($1, $2, $3, 'pending', $4, $5)
            RETURNING *
            """,
            record.entry_id, record.tenant_id, record.site_id,
            record.prompt_version, record.prompt_text,
        )
        return _record_to_editorialisation(row)

    async def get_by_id(self, record_id: int) -> Editorialisation | None:
        row = await self._db.fetchrow("SELECT * FROM editorialisations WHERE id = $1", record_id)
        return _record_to_editorialisation(row) if row else None

    async def has_completed(self, entry_id: int) -> bool:
        return bool(
            await self._db.fetchval(
                """
                SELECT EXISTS(
                    SELECT 1 FROM editorialisations
                    WHERE entry_id = $1 AND status = 'completed'
                )
                """,
                entry_id,
            )
        )

    async def mark_completed(
        self,
        record_id: int,
        raw_response: str,
        parsed_response: dict[str, Any],
        tokens_in: int,
        tokens_out: int,
        tokens_used: int,
        model_name: str,
        duration_ms: int,
    ) -> Editorialisation | None:
        row = await self._db.fetchrow(
            _COMPLETE_SQL,
            record_id, raw_response, parsed_response,
            tokens_in, tokens_out, tokens_used, model_name, duration_ms,
        )
        if row is None:
            logger.warning("Editorialisation %s is not pending, not completing", record_id)
            return None
        return _record_to_editorialisation(row)

    async def mark_failed(
        self, record_id: int, error_message: str, raw_response: str | None = None
    ) -> Editorialisation | None:
        row = await self._db.fetchrow(_FAIL_SQL, record_id, error_message, raw_response)
        if row is None:
            logger.warning("Editorialisation %s is not pending, not failing", record_id)
            return None
        return _record_to_editorialisation(row)

    async def set_cost(self, record_id: int, estimated_cost_cents: float) -> None:
        await self._db.execute(
            "UPDATE editorialisations SET estimated_cost_cents = $2 WHERE id = $1",
            record_id, estimated_cost_cents,
        )

    async def usage_since(self, since: datetime, tenant_id: int | None = None) -> dict[str, Any]:
        """Token and cost totals over completed records created since ``since``."""
        row = await self._db.fetchrow(
            """
            SELECT
                COUNT(*) AS requests,
                COALESCE(SUM(COALESCE(tokens_used, COALESCE(tokens_in, 0) + COALESCE(tokens_out, 0))), 0) AS tokens,
                COALESCE(SUM(estimated_cost_cents), 0) AS cost_cents
            FROM editorialisations
            WHERE status = 'completed'
              AND created_at >= $1
              AND ($2::bigint IS NULL OR tenant_id = $2)
            """,
            since, tenant_id,
        )
        return {
            "requests": row["requests"],
            "tokens": int(row["tokens"]),
            "cost_cents": float(row["cost_cents"]),
        }
