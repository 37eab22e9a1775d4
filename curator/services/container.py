"""
Wiring of repositories and services shared by jobs, the worker and the CLI.

Handlers receive a ``Services`` instance instead of constructing their own
dependencies, so tests can hand them fakes for any subset of attributes.
"""

from dataclasses import dataclass
from typing import Any

from curator.config.settings import Settings, get_settings
from curator.editorialisation.config import EditorialisationConfig
from curator.editorialisation.llm_client import LLMClient
from curator.editorialisation.repository import EditorialisationRepository
from curator.editorialisation.service import EditorialisationService
from curator.editorialisation.usage import AIUsageTracker
from curator.enrichment.config import EnrichmentConfig
from curator.enrichment.link_enrichment import LinkEnrichmentService
from curator.enrichment.metadata import MetadataScraper
from curator.enrichment.pipeline import EnrichmentPipeline
from curator.enrichment.screenshot import ScreenshotService
from curator.entries.repository import CategoryRepository, EntryRepository
from curator.ingestion.config import IngestionConfig
from curator.ingestion.rate_limiter import GlobalSearchQuota, SourceRateLimiter
from curator.ingestion.upsert import UpsertEngine
from curator.sources.repository import ImportRunRepository, SourcesRepository
from curator.storage.database import Database
from curator.workflow.config import WorkflowConfig
from curator.workflow.repository import WorkflowPauseRepository
from curator.workflow.service import WorkflowPauseRegistry


@dataclass
class Services:
    database: Database
    enqueuer: Any
    settings: Settings
    ingestion_config: IngestionConfig
    enrichment_config: EnrichmentConfig
    editorialisation_config: EditorialisationConfig
    sources: SourcesRepository
    import_runs: ImportRunRepository
    entries: EntryRepository
    categories: CategoryRepository
    editorialisations: EditorialisationRepository
    pauses: WorkflowPauseRegistry
    rate_limiter: SourceRateLimiter
    search_quota: GlobalSearchQuota
    upsert: UpsertEngine
    llm: LLMClient
    usage: AIUsageTracker
    editorialisation: EditorialisationService
    pipeline: EnrichmentPipeline

    @classmethod
    def build(
        cls,
        database: Database,
        enqueuer: Any,
        settings: Settings | None = None,
        ingestion_config: IngestionConfig | None = None,
        enrichment_config: EnrichmentConfig | None = None,
        editorialisation_config: EditorialisationConfig | None = None,
        workflow_config: WorkflowConfig | None = None,
    ) -> "Services":
        """Construct every repository and service on one database and enqueuer."""
        settings = settings or get_settings()
        ingestion_config = ingestion_config or IngestionConfig()
        enrichment_config = enrichment_config or EnrichmentConfig()
        editorialisation_config = editorialisation_config or EditorialisationConfig()

        sources = SourcesRepository(database)
        import_runs = ImportRunRepository(database)
        entries = EntryRepository(database)
        editorialisations = EditorialisationRepository(database)
        pauses = WorkflowPauseRegistry(
            WorkflowPauseRepository(database),
            config=workflow_config,
            enqueuer=enqueuer,
        )

        llm = LLMClient(editorialisation_config)
        usage = AIUsageTracker(editorialisations, editorialisation_config)
        editorialisation = EditorialisationService(
            entries, editorialisations, llm, usage, editorialisation_config
        )
        pipeline = EnrichmentPipeline(
            entries=entries,
            sources=sources,
            pauses=pauses,
            enqueuer=enqueuer,
            scraper=MetadataScraper(enrichment_config),
            link_enrichment=LinkEnrichmentService(enrichment_config),
            screenshots=ScreenshotService(entries, enrichment_config),
            editorialisation=editorialisation,
            usage=usage,
            config=enrichment_config,
        )

        return cls(
            database=database,
            enqueuer=enqueuer,
            settings=settings,
            ingestion_config=ingestion_config,
            enrichment_config=enrichment_config,
            editorialisation_config=editorialisation_config,
            sources=sources,
            import_runs=import_runs,
            entries=entries,
            categories=CategoryRepository(database),
            editorialisations=editorialisations,
            pauses=pauses,
            rate_limiter=SourceRateLimiter(import_runs, ingestion_config),
            search_quota=GlobalSearchQuota(import_runs, ingestion_config),
            upsert=UpsertEngine(entries, enqueuer, ingestion_config),
            llm=llm,
            usage=usage,
            editorialisation=editorialisation,
            pipeline=pipeline,
        )

    async def close(self) -> None:
        await self.llm.close()
