"""Workflow pause registry: the tenant-scoped kill switch every job consults."""

import logging
import time
from typing import Any

from curator.errors import RecordNotFoundError
from curator.workflow.config import WorkflowConfig
from curator.workflow.repository import WorkflowPauseRepository
from curator.workflow.schemas import WorkflowPause, WorkflowType

logger = logging.getLogger(__name__)


class WorkflowPauseRegistry:
    """Cached view of active pauses plus the pause/resume admin actions.

    ``is_paused`` runs on every job invocation, so the registry keeps a
    per-process snapshot of all active pauses for ``cache_ttl_seconds``.
    Pauses created by other processes become visible once the snapshot
    expires; local pause/resume calls invalidate it immediately.
    """

    def __init__(
        self,
        repository: WorkflowPauseRepository,
        config: WorkflowConfig | None = None,
        enqueuer: Any = None,
    ) -> None:
        self._repo = repository
        self._config = config or WorkflowConfig()
        self._enqueuer = enqueuer

        self._active_cache: list[WorkflowPause] | None = None
        self._cached_at: float = 0.0

    # ── Cached accessors ────────────────────────────────────────

    async def _active(self) -> list[WorkflowPause]:
        now = time.monotonic()
        ttl = self._config.cache_ttl_seconds
        if self._active_cache is not None and (now - self._cached_at) < ttl:
            return self._active_cache

        pauses = await self._repo.list_active()
        self._active_cache = pauses
        self._cached_at = now
        return pauses

    def invalidate_cache(self) -> None:
        """Force the next lookup to hit the database."""
        self._active_cache = None
        self._cached_at = 0.0

    async def is_paused(self, workflow_type: WorkflowType, tenant_id: int | None) -> bool:
        """True if the type (or its umbrella) is paused globally or for the tenant."""
        return any(p.applies_to(workflow_type, tenant_id) for p in await self._active())

    async def find_active(
        self, workflow_type: WorkflowType, tenant_id: int | None
    ) -> WorkflowPause | None:
        """The pause blocking this type for the tenant; tenant scope wins over global."""
        matching = [p for p in await self._active() if p.applies_to(workflow_type, tenant_id)]
        if not matching:
            return None
        matching.sort(key=lambda p: (p.is_global, p.workflow_type != workflow_type))
        return matching[0]

    async def active_pauses(self, tenant_id: int | None = None) -> list[WorkflowPause]:
        """Active pauses visible to a tenant (its own plus global ones)."""
        return [
            p for p in await self._active()
            if p.tenant_id is None or p.tenant_id == tenant_id
        ]

    async def status_summary(self, tenant_id: int | None = None) -> dict[str, dict]:
        """Per workflow type: whether it is paused for the tenant, and by what."""
        summary: dict[str, dict] = {}
        for workflow_type in WorkflowType:
            pause = await self.find_active(workflow_type, tenant_id)
            summary[workflow_type.value] = {
                "paused": pause is not None,
                "scope": None if pause is None else ("global" if pause.is_global else "tenant"),
                "via": pause.workflow_type.value if pause else None,
                "paused_by": pause.paused_by if pause else None,
                "paused_at": pause.paused_at if pause else None,
            }
        return summary

    # ── Admin actions ───────────────────────────────────────────

    async def pause(
        self,
        workflow_type: WorkflowType,
        paused_by: str,
        tenant_id: int | None = None,
        reason: str | None = None,
    ) -> WorkflowPause:
        """Pause a workflow. Returns the existing pause if one is already active."""
        pause = await self._repo.create(
            WorkflowPause(
                workflow_type=workflow_type,
                paused_by=paused_by,
                tenant_id=tenant_id,
                reason=reason,
            )
        )
        self.invalidate_cache()
        logger.info(
            "Workflow %s paused by %s (tenant=%s, pause_id=%s)",
            workflow_type.value, paused_by, tenant_id, pause.id,
        )
        return pause

    async def resume(
        self,
        pause_id: int,
        resumed_by: str,
        process_backlog: bool = False,
    ) -> WorkflowPause:
        """Resolve a pause. Resuming an already-resumed pause is a no-op.

        Raises:
            RecordNotFoundError: if no pause has this id.
        """
        resumed = await self._repo.resume(pause_id, resumed_by)
        self.invalidate_cache()

        if resumed is None:
            existing = await self._repo.get_by_id(pause_id)
            if existing is None:
                raise RecordNotFoundError("WorkflowPause", pause_id)
            logger.info("Workflow pause %s was already resumed", pause_id)
            return existing

        logger.info(
            "Workflow %s resumed by %s (tenant=%s, pause_id=%s)",
            resumed.workflow_type.value, resumed_by, resumed.tenant_id, pause_id,
        )

        if process_backlog and self._enqueuer is not None:
            await self._enqueuer.enqueue(
                "process_backlog",
                workflow_type=resumed.workflow_type.value,
                tenant_id=resumed.tenant_id,
            )
        return resumed
