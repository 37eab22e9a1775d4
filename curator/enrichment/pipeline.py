"""
Staged enrichment of entries.

Each stage acts on one entry id and enqueues the next stage on success:

    scrape_metadata -> enrich_link -> [editorialise] -> capture_screenshot

The entry reaches ``complete`` when the screenshot job is enqueued, so a
skipped or failed screenshot never holds back publication. Errors mark the
entry failed (the error is appended, earlier ones are kept) and propagate
to the job runner, whose policy decides whether the stage is retried.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

import structlog

from curator.editorialisation.service import EditorialisationService
from curator.editorialisation.usage import AIUsageTracker
from curator.enrichment.config import EnrichmentConfig
from curator.enrichment.link_enrichment import LinkEnrichmentService
from curator.enrichment.metadata import MetadataScraper
from curator.enrichment.screenshot import ScreenshotResult, ScreenshotService
from curator.entries.repository import EntryRepository
from curator.entries.schemas import EnrichmentStatus, Entry, merge_non_blank
from curator.errors import AIError, EnrichmentError, RecordNotFoundError
from curator.ingestion.http_client import HTTPClientError
from curator.ingestion.upsert import has_placeholder_title
from curator.jobs.context import JobContext
from curator.observability.metrics import get_metrics
from curator.sources.repository import SourcesRepository
from curator.workflow.schemas import WorkflowType
from curator.workflow.service import WorkflowPauseRegistry

logger = structlog.get_logger(__name__)


class EnrichmentPipeline:
    """The four enrichment stages plus the stale sweep.

    Args:
        entries: Entry repository (state transitions and field writes)
        sources: Source repository, read for the editorialise flag
        pauses: Workflow pause registry consulted at every stage entry
        enqueuer: Job enqueuer used to chain stages
        scraper: Page metadata scraper
        link_enrichment: Link enrichment service
        screenshots: Screenshot service
        editorialisation: AI editorialisation service
        usage: AI token budget
        config: Enrichment configuration
    """

    def __init__(
        self,
        entries: EntryRepository,
        sources: SourcesRepository,
        pauses: WorkflowPauseRegistry,
        enqueuer: Any,
        scraper: MetadataScraper,
        link_enrichment: LinkEnrichmentService,
        screenshots: ScreenshotService,
        editorialisation: EditorialisationService,
        usage: AIUsageTracker,
        config: EnrichmentConfig | None = None,
    ) -> None:
        self._entries = entries
        self._sources = sources
        self._pauses = pauses
        self._enqueuer = enqueuer
        self._scraper = scraper
        self._link_enrichment = link_enrichment
        self._screenshots = screenshots
        self._editorialisation = editorialisation
        self._usage = usage
        self._config = config or EnrichmentConfig()
        self._metrics = get_metrics()

    async def _load(self, ctx: JobContext, entry_id: int) -> Entry:
        entry = await self._entries.get_by_id(entry_id)
        if entry is None:
            raise RecordNotFoundError("Entry", entry_id)
        ctx.bind_tenant(entry.tenant_id, entry.site_id)
        return entry

    async def _paused(self, workflow_type: WorkflowType, entry: Entry) -> bool:
        if await self._pauses.is_paused(workflow_type, entry.tenant_id):
            logger.info("Workflow paused, skipping stage", workflow=workflow_type.value)
            return True
        return False

    async def _hold(self, entry: Entry) -> None:
        """Return a paused, in-flight entry to pending so the backlog restarts it."""
        if await self._entries.mark_enrichment_pending(entry.id) is not None:
            logger.info("Entry returned to pending until enrichment resumes", entry_id=entry.id)

    async def _start(self, entry: Entry) -> Entry:
        started = await self._entries.mark_enrichment_started(entry.id)
        self._metrics.record_enrichment(EnrichmentStatus.ENRICHING.value)
        return started or entry

    async def _fail(self, entry: Entry, error: Exception) -> None:
        await self._entries.mark_enrichment_failed(entry.id, f"{type(error).__name__}: {error}")
        self._metrics.record_enrichment(EnrichmentStatus.FAILED.value)

    async def _complete(self, entry: Entry) -> None:
        """Queue the screenshot and mark the entry publication-ready."""
        await self._enqueuer.enqueue("capture_screenshot", entry.id)
        await self._entries.mark_enrichment_complete(entry.id)
        self._metrics.record_enrichment(EnrichmentStatus.COMPLETE.value)
        logger.info("Entry enrichment complete", entry_id=entry.id)

    # ── Stages ──────────────────────────────────────────────────

    async def scrape_metadata(self, ctx: JobContext, entry_id: int) -> dict[str, Any] | None:
        """Fetch the page and fill blank metadata fields. Returns the fields written.

        A title derived from the URL at upsert time is replaced by the page
        title; any other existing value is kept.
        """
        entry = await self._load(ctx, entry_id)
        if await self._paused(WorkflowType.ENRICHMENT, entry):
            await self._hold(entry)
            return None

        entry = await self._start(entry)
        try:
            scraped = await self._scraper.scrape(entry.url_canonical)
        except (HTTPClientError, EnrichmentError) as e:
            await self._fail(entry, e)
            raise

        canonical = scraped.pop("canonical_url", None)
        updates = merge_non_blank(entry, scraped)
        payload = dict(entry.raw_payload)
        page_title = (scraped.get("title") or "").strip()
        if page_title and has_placeholder_title(entry):
            updates["title"] = page_title
            payload.pop("title_source", None)
        if canonical:
            payload["canonical_url"] = canonical
        if payload != entry.raw_payload:
            updates["raw_payload"] = payload
        await self._entries.update_fields(entry.id, updates)

        await self._enqueuer.enqueue("enrich_link", entry.id)
        logger.info("Metadata scraped", entry_id=entry.id, fields=sorted(updates))
        return updates

    async def enrich_link(self, ctx: JobContext, entry_id: int) -> dict[str, Any] | None:
        """Link details, then branch to editorialisation or straight to completion."""
        entry = await self._load(ctx, entry_id)
        if await self._paused(WorkflowType.ENRICHMENT, entry):
            await self._hold(entry)
            return None

        entry = await self._start(entry)
        try:
            enriched = await self._link_enrichment.enrich(entry.url_canonical)
        except EnrichmentError as e:
            await self._fail(entry, e)
            raise

        updates = merge_non_blank(entry, enriched)
        await self._entries.update_fields(entry.id, updates)

        if await self._should_editorialise(entry):
            await self._enqueuer.enqueue("editorialise", entry.id)
            logger.info("Link enriched, editorialisation queued", entry_id=entry.id)
        else:
            await self._complete(entry)
        return updates

    async def _should_editorialise(self, entry: Entry) -> bool:
        if entry.editorialised or entry.source_id is None:
            return False
        source = await self._sources.get_by_id(entry.source_id)
        if source is None or not source.editorialisation_enabled:
            return False
        return await self._usage.can_make_request(entry.tenant_id)

    async def editorialise(self, ctx: JobContext, entry_id: int) -> None:
        """AI editorial context; the entry completes whether or not AI ran."""
        entry = await self._load(ctx, entry_id)
        if await self._paused(WorkflowType.EDITORIALISATION, entry):
            return

        if not await self._usage.can_make_request(entry.tenant_id):
            logger.warning("AI budget exhausted, completing without editorialisation", entry_id=entry.id)
            await self._complete(entry)
            return

        entry = await self._start(entry)
        source = await self._sources.get_by_id(entry.source_id) if entry.source_id else None
        try:
            record = await self._editorialisation.editorialise(entry, source)
        except AIError as e:
            await self._fail(entry, e)
            raise

        if record is not None:
            logger.info(
                "Editorialisation finished",
                entry_id=entry.id,
                editorialisation_id=record.id,
                status=record.status.value,
            )
        await self._complete(entry)

    async def capture_screenshot(
        self, ctx: JobContext, entry_id: int, force: bool = False
    ) -> ScreenshotResult | None:
        entry = await self._load(ctx, entry_id)
        if await self._paused(WorkflowType.ENRICHMENT, entry):
            return None
        result = await self._screenshots.capture(entry, force=force)
        if result is not None:
            logger.info("Screenshot stored", entry_id=entry.id, fallback=result.fallback)
        return result

    async def sweep_stale(self, now: datetime | None = None) -> int:
        """Reset entries enriched too long ago and re-queue them. Returns the count."""
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=self._config.stale_after_days)
        batch_size = self._config.sweep_batch_size
        total = 0
        while True:
            ids = await self._entries.reset_stale(cutoff, batch_size)
            for entry_id in ids:
                await self._enqueuer.enqueue("scrape_metadata", entry_id)
            total += len(ids)
            if len(ids) < batch_size:
                break
        if total:
            self._metrics.record_enrichment(EnrichmentStatus.PENDING.value)
        logger.info("Stale sweep finished", reset=total, cutoff=cutoff.isoformat())
        return total
