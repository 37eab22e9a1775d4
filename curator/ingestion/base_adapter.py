"""
Base adapter interface and the shared run procedure for source adapters.

Each adapter implements _fetch_raw() (yield raw API items) and
_transform() (map one raw item to a NormalizedItem). The base class owns
everything around that:
- source loading, enabled/kind checks and tenant binding
- workflow pause, per-source rate limit and search-API quota checks
- import run bookkeeping and source status
- per-item failure isolation and created/updated counting
"""

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from curator.entries.schemas import Entry, EntryKind
from curator.errors import ConfigurationError, InvalidURLError, RecordNotFoundError
from curator.ingestion.canonical import canonicalize
from curator.ingestion.http_client import HTTPClient, RetryConfig
from curator.ingestion.schemas import NormalizedItem
from curator.jobs.context import JobContext
from curator.observability.metrics import get_metrics
from curator.sources.schemas import (
    STATUS_PAUSED,
    STATUS_RATE_LIMITED,
    STATUS_SKIPPED,
    STATUS_SUCCESS,
    ImportRun,
    Source,
    SourceKind,
)
from curator.workflow.schemas import WorkflowType

logger = logging.getLogger(__name__)

_STATUS_MESSAGE_LIMIT = 200


@dataclass
class AdapterStats:
    """Statistics for an adapter run."""

    fetched: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0
    start_time: float = field(default_factory=time.monotonic)

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self.start_time

    @property
    def total(self) -> int:
        return self.created + self.updated + self.failed


@dataclass
class RunOutcome:
    """What one adapter invocation did.

    ``status`` is the value written to Source.last_status; ``import_run`` is
    None when the run was short-circuited before an ImportRun was created.
    """

    status: str
    import_run: ImportRun | None = None
    stats: AdapterStats = field(default_factory=AdapterStats)

    @property
    def ran(self) -> bool:
        return self.import_run is not None


class SourceAdapter(ABC):
    """
    Abstract base class for source adapters.

    Subclasses must implement:
        - kind: SourceKind handled
        - workflow_type: pause switch consulted before running
        - _fetch_raw(): Async generator yielding raw items
        - _transform(): Convert a raw item to NormalizedItem (or None)

    Subclasses may override _persist() to change how items are stored; the
    default is the direct create/update path keyed by canonical URL.
    """

    kind: SourceKind
    workflow_type: WorkflowType

    def __init__(self, services: Any) -> None:
        self._services = services
        self._stats = AdapterStats()

    @property
    def name(self) -> str:
        return f"{self.kind.value}_adapter"

    @property
    def stats(self) -> AdapterStats:
        return self._stats

    # ── Subclass hooks ──────────────────────────────────────────

    @abstractmethod
    def _fetch_raw(self, source: Source, client: HTTPClient) -> AsyncIterator[dict[str, Any]]:
        """
        Fetch raw items from the external API.

        Raises:
            ConfigurationError: when required source config is missing
            HTTPClientError: when the upstream request fails
        """
        ...

    @abstractmethod
    def _transform(self, source: Source, raw: dict[str, Any]) -> NormalizedItem | None:
        """
        Map one raw item. Return None for items without a usable URL.

        May raise on malformed data; the item is then counted as failed.
        """
        ...

    async def _persist(self, source: Source, item: NormalizedItem) -> bool:
        """Create or update the entry for ``item``. Returns True when created."""
        canonical = canonicalize(item.url)
        if canonical is None:
            raise InvalidURLError(f"Blank URL in {self.kind.value} item")

        entry = Entry(
            tenant_id=source.tenant_id,
            site_id=source.site_id,
            source_id=source.id,
            entry_kind=EntryKind.FEED,
            url_raw=item.url,
            url_canonical=canonical,
            title=item.title,
            description=item.description,
            image_url=item.image_url,
            author_name=item.author_name,
            published_at=item.published_at,
            tags=item.tags,
            raw_payload=item.raw_payload,
        )
        saved, created = await self._services.entries.save_listing(entry)
        if created:
            await self._services.enqueuer.enqueue("scrape_metadata", saved.id)
        return created

    # ── Helpers for subclasses ──────────────────────────────────

    @staticmethod
    def config_value(source: Source, key: str, default: Any = None) -> Any:
        value = source.config.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            return default
        return value

    def require_config(self, source: Source, key: str, label: str | None = None) -> Any:
        value = self.config_value(source, key)
        if value is None:
            raise ConfigurationError(f"{label or key} not configured for source {source.id}")
        return value

    def max_results(self, source: Source, default: int) -> int:
        try:
            return max(0, int(self.config_value(source, "max_results", default)))
        except (TypeError, ValueError):
            return default

    def _http_client(self) -> HTTPClient:
        settings = self._services.settings
        config = self._services.ingestion_config
        return HTTPClient(
            retry_config=RetryConfig(
                max_retries=settings.max_http_retries,
                max_backoff_seconds=settings.max_backoff_seconds,
            ),
            timeout=config.http_timeout,
            user_agent=config.user_agent,
        )

    # ── Run procedure ───────────────────────────────────────────

    async def run(self, ctx: JobContext, source_id: int) -> RunOutcome:
        """
        Run the adapter for one source.

        Raises:
            RecordNotFoundError: if the source does not exist
            Exception: fetch failures, after the ImportRun is marked failed
        """
        services = self._services
        source = await services.sources.get_by_id(source_id)
        if source is None:
            raise RecordNotFoundError("Source", source_id)

        ctx.bind_tenant(source.tenant_id, source.site_id)

        if not source.enabled or source.kind != self.kind:
            logger.info("Skipping source %s (enabled=%s, kind=%s)", source.id, source.enabled, source.kind.value)
            return await self._short_circuit(source, STATUS_SKIPPED)

        if await services.pauses.is_paused(self.workflow_type, source.tenant_id):
            logger.info("Skipping source %s: %s paused", source.id, self.workflow_type.value)
            return await self._short_circuit(source, STATUS_PAUSED)

        if not await services.rate_limiter.allowed(source):
            return await self._short_circuit(source, STATUS_RATE_LIMITED)

        if self.kind.is_search_api:
            quota_status = await services.search_quota.check()
            if quota_status is not None:
                return await self._short_circuit(source, quota_status)

        run = await services.import_runs.create_for_source(source.id)
        self._stats = AdapterStats()
        logger.info("Starting %s for source %s (import run %s)", self.name, source.id, run.id)

        try:
            async with self._http_client() as client:
                async for raw in self._fetch_raw(source, client):
                    self._stats.fetched += 1
                    await self._process_item(source, raw)
        except Exception as e:
            message = str(e) or type(e).__name__
            await services.import_runs.mark_failed(run.id, message)
            await services.sources.update_run_status(
                source.id, f"error: {message[:_STATUS_MESSAGE_LIMIT]}"
            )
            get_metrics().record_import_run(self.kind.value, "failed")
            logger.error("%s failed for source %s: %s", self.name, source.id, message)
            raise

        completed = await services.import_runs.mark_completed(
            run.id,
            items_created=self._stats.created,
            items_updated=self._stats.updated,
            items_failed=self._stats.failed,
        )
        await services.sources.update_run_status(source.id, STATUS_SUCCESS)

        metrics = get_metrics()
        metrics.record_import_run(self.kind.value, "completed")
        metrics.record_items(
            self.kind.value,
            created=self._stats.created,
            updated=self._stats.updated,
            failed=self._stats.failed,
        )
        logger.info(
            f"{self.name} completed for source {source.id}: "
            f"created={self._stats.created}, updated={self._stats.updated}, "
            f"failed={self._stats.failed}, elapsed={self._stats.elapsed_seconds:.2f}s"
        )
        return RunOutcome(STATUS_SUCCESS, completed or run, self._stats)

    async def _process_item(self, source: Source, raw: dict[str, Any]) -> None:
        try:
            item = self._transform(source, raw)
            if item is None:
                self._stats.failed += 1
                return
            created = await self._persist(source, item)
        except Exception as e:
            self._stats.failed += 1
            logger.warning("Failed to process %s item: %s", self.kind.value, e)
            return

        if created:
            self._stats.created += 1
        else:
            self._stats.updated += 1

    async def _short_circuit(self, source: Source, status: str) -> RunOutcome:
        await self._services.sources.update_run_status(source.id, status)
        get_metrics().record_import_run(self.kind.value, status)
        return RunOutcome(status)
