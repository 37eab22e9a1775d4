"""Jobs that fan out other jobs: scheduled source runs and post-resume backlogs."""

from datetime import datetime
from typing import Any

import structlog

from curator.entries.schemas import EnrichmentStatus
from curator.ingestion.registry import ADAPTERS
from curator.sources.schemas import SourceKind
from curator.workflow.schemas import INGESTION_TYPES, WorkflowType

logger = structlog.get_logger(__name__)

BACKLOG_LIMIT = 500


def kinds_for_workflow(workflow_type: WorkflowType) -> list[SourceKind]:
    """Source kinds whose adapters a pause of ``workflow_type`` stops."""
    if workflow_type is WorkflowType.ALL_INGESTION:
        return list(ADAPTERS)
    return [kind for kind, adapter in ADAPTERS.items() if adapter.workflow_type is workflow_type]


async def enqueue_source_runs(
    services: Any,
    kinds: list[SourceKind] | None = None,
    tenant_id: int | None = None,
    due_only: bool = False,
    now: datetime | None = None,
) -> int:
    sources = await services.sources.list_enabled(kinds=kinds, tenant_id=tenant_id)
    enqueued = 0
    for source in sources:
        if due_only and not source.run_due(now):
            continue
        await services.enqueuer.enqueue("run_source", source.id, kind=source.kind.value)
        enqueued += 1
    return enqueued


async def process_due_sources(services: Any, now: datetime | None = None) -> int:
    """Enqueue an adapter run for every enabled source whose schedule is due."""
    enqueued = await enqueue_source_runs(services, due_only=True, now=now)
    logger.info("Due sources enqueued", count=enqueued)
    return enqueued


async def process_backlog(services: Any, workflow_type: WorkflowType, tenant_id: int | None) -> int:
    """Re-enqueue the work a pause held back. Returns the number of jobs enqueued."""
    if workflow_type is WorkflowType.ALL_INGESTION or workflow_type in INGESTION_TYPES:
        count = await enqueue_source_runs(
            services, kinds=kinds_for_workflow(workflow_type), tenant_id=tenant_id
        )
    elif workflow_type is WorkflowType.ENRICHMENT:
        ids = await services.entries.list_ids_by_status(
            EnrichmentStatus.PENDING, tenant_id=tenant_id, limit=BACKLOG_LIMIT
        )
        for entry_id in ids:
            await services.enqueuer.enqueue("scrape_metadata", entry_id)
        count = len(ids)
    else:
        ids = await services.entries.list_unedited_ids(tenant_id=tenant_id, limit=BACKLOG_LIMIT)
        for entry_id in ids:
            await services.enqueuer.enqueue("editorialise", entry_id)
        count = len(ids)

    logger.info(
        "Backlog enqueued",
        workflow=workflow_type.value,
        tenant_id=tenant_id,
        count=count,
    )
    return count
