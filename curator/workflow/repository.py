"""Database repository for the workflow_pauses table."""

import logging

from curator.storage.database import Database
from curator.workflow.schemas import WorkflowPause, WorkflowType

logger = logging.getLogger(__name__)

# The partial unique index allows at most one active pause per
# (type, tenant scope); resolved pauses accumulate as history.
_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS workflow_pauses (
    id             BIGSERIAL PRIMARY KEY,
    workflow_type  TEXT NOT NULL,
    tenant_id      BIGINT,
    paused_by      TEXT NOT NULL,
    reason         TEXT,
    paused_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    resumed_at     TIMESTAMPTZ,
    resumed_by     TEXT
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_workflow_pauses_one_active
    ON workflow_pauses(workflow_type, COALESCE(tenant_id, 0))
    WHERE resumed_at IS NULL;
"""

_INSERT_SQL = """
INSERT INTO workflow_pauses (workflow_type, tenant_id, paused_by, reason)
VALUES ($1, $2, $3, $4)
ON CONFLICT (workflow_type, COALESCE(tenant_id, 0)) WHERE resumed_at IS NULL
DO NOTHING
RETURNING *
"""

_FIND_ACTIVE_SQL = """
SELECT * FROM workflow_pauses
WHERE workflow_type = $1
  AND tenant_id IS NOT DISTINCT FROM $2
  AND resumed_at IS NULL
"""

_RESUME_SQL = """
UPDATE workflow_pauses SET resumed_at = NOW(), resumed_by = $2
WHERE id = $1 AND resumed_at IS NULL
RETURNING *
"""


def _record_to_pause(record) -> WorkflowPause:
    """Convert an asyncpg Record to a WorkflowPause dataclass."""
    return WorkflowPause(
        id=record["id"],
        workflow_type=WorkflowType(record["workflow_type"]),
        tenant_id=record["tenant_id"],
        paused_by=record["paused_by"],
        reason=record["reason"],
        paused_at=record["paused_at"],
        resumed_at=record["resumed_at"],
        resumed_by=record["resumed_by"],
    )


class WorkflowPauseRepository:
    """CRUD operations for workflow pauses."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the workflow_pauses table and indexes (idempotent)."""
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("Workflow pauses table ensured")

    async def list_active(self) -> list[WorkflowPause]:
        """Every active pause across all tenants."""
        rows = await self._db.fetch(
            "SELECT * FROM workflow_pauses WHERE resumed_at IS NULL ORDER BY paused_at"
        )
        return [_record_to_pause(r) for r in rows]

    async def find_active(
        self, workflow_type: WorkflowType, tenant_id: int | None
    ) -> WorkflowPause | None:
        """The active pause for exactly this type and scope."""
        row = await self._db.fetchrow(_FIND_ACTIVE_SQL, workflow_type.value, tenant_id)
        return _record_to_pause(row) if row else None

    async def create(self, pause: WorkflowPause) -> WorkflowPause:
        """Insert an active pause, or return the one already active for the scope."""
        # Two rounds cover a concurrent resume between insert and lookup.
        for _ in range(2):
            row = await self._db.fetchrow(
                _INSERT_SQL,
                pause.workflow_type.value,
                pause.tenant_id,
                pause.paused_by,
                pause.reason,
            )
            if row is not None:
                return _record_to_pause(row)

            existing = await self.find_active(pause.workflow_type, pause.tenant_id)
            if existing is not None:
                return existing

        raise RuntimeError(
            f"Could not create or find active {pause.workflow_type.value} pause"
        )

    async def get_by_id(self, pause_id: int) -> WorkflowPause | None:
        row = await self._db.fetchrow("SELECT * FROM workflow_pauses WHERE id = $1", pause_id)
        return _record_to_pause(row) if row else None

    async def resume(self, pause_id: int, resumed_by: str) -> WorkflowPause | None:
        """Resolve an active pause. Returns None if it was not active."""
        row = await self._db.fetchrow(_RESUME_SQL, pause_id, resumed_by)
        return _record_to_pause(row) if row else None
