"""
Job handlers, one per job name.

Each handler takes the job context, the services container and the job,
loads what it needs and raises on failure; retries are the runner's
business.
"""

from typing import Any

from curator.entries.schemas import EntryKind
from curator.errors import ConfigurationError, RecordNotFoundError
from curator.ingestion.registry import adapter_for
from curator.jobs.context import JobContext
from curator.jobs.scheduling import process_backlog, process_due_sources
from curator.jobs.schemas import Job
from curator.sources.schemas import SourceKind
from curator.workflow.schemas import WorkflowType


def _record_id(job: Job) -> int:
    if job.record_id is None:
        raise ConfigurationError(f"Job {job.name} requires a record id")
    return job.record_id


async def handle_run_source(ctx: JobContext, services: Any, job: Job) -> None:
    source_id = _record_id(job)
    kind = job.params.get("kind")
    if kind is None:
        source = await services.sources.get_by_id(source_id)
        if source is None:
            raise RecordNotFoundError("Source", source_id)
        kind = source.kind.value
    try:
        source_kind = SourceKind(kind)
    except ValueError as e:
        raise ConfigurationError(f"Unknown source kind: {kind}") from e
    await adapter_for(source_kind, services).run(ctx, source_id)


async def _upsert_url(ctx: JobContext, services: Any, job: Job, entry_kind: EntryKind) -> None:
    """Upsert one discovered URL into a category.

    Params: tenant_id, category_id, url and optionally source_id. Blank or
    invalid URLs are skipped by the upsert engine without raising.
    """
    try:
        tenant_id = int(job.params["tenant_id"])
        category_id = int(job.params["category_id"])
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigurationError(
            f"Job {job.name} requires tenant_id and category_id: {job.params}"
        ) from e

    category = await services.categories.get_by_id(category_id)
    if category is None:
        raise RecordNotFoundError("Category", category_id)
    ctx.bind_tenant(tenant_id, category.site_id)

    source = None
    source_id = job.params.get("source_id")
    if source_id is not None:
        source = await services.sources.get_by_id(int(source_id))
        if source is None:
            raise RecordNotFoundError("Source", source_id)

    await services.upsert.upsert(
        tenant_id, category, job.params.get("url"), source=source, entry_kind=entry_kind
    )


async def handle_upsert_entry(ctx: JobContext, services: Any, job: Job) -> None:
    await _upsert_url(ctx, services, job, EntryKind.FEED)


async def handle_upsert_listing(ctx: JobContext, services: Any, job: Job) -> None:
    await _upsert_url(ctx, services, job, EntryKind.DIRECTORY)


async def handle_scrape_metadata(ctx: JobContext, services: Any, job: Job) -> None:
    await services.pipeline.scrape_metadata(ctx, _record_id(job))


async def handle_enrich_link(ctx: JobContext, services: Any, job: Job) -> None:
    await services.pipeline.enrich_link(ctx, _record_id(job))


async def handle_editorialise(ctx: JobContext, services: Any, job: Job) -> None:
    await services.pipeline.editorialise(ctx, _record_id(job))


async def handle_capture_screenshot(ctx: JobContext, services: Any, job: Job) -> None:
    await services.pipeline.capture_screenshot(
        ctx, _record_id(job), force=bool(job.params.get("force", False))
    )


async def handle_sweep_stale(ctx: JobContext, services: Any, job: Job) -> None:
    await services.pipeline.sweep_stale()


async def handle_process_due_sources(ctx: JobContext, services: Any, job: Job) -> None:
    await process_due_sources(services)


async def handle_process_backlog(ctx: JobContext, services: Any, job: Job) -> None:
    try:
        workflow_type = WorkflowType(job.params["workflow_type"])
    except (KeyError, ValueError) as e:
        raise ConfigurationError(f"Invalid backlog workflow type: {job.params}") from e
    tenant_id = job.params.get("tenant_id")
    ctx.bind_tenant(tenant_id)
    await process_backlog(services, workflow_type, tenant_id)


HANDLERS = {
    "run_source": handle_run_source,
    "upsert_entry": handle_upsert_entry,
    "upsert_listing": handle_upsert_listing,
    "scrape_metadata": handle_scrape_metadata,
    "enrich_link": handle_enrich_link,
    "editorialise": handle_editorialise,
    "capture_screenshot": handle_capture_screenshot,
    "sweep_stale": handle_sweep_stale,
    "process_due_sources": handle_process_due_sources,
    "process_backlog": handle_process_backlog,
}
