"""Enrichment: metadata scraping, link details, screenshots and the stage pipeline."""

from curator.enrichment.config import EnrichmentConfig
from curator.enrichment.link_enrichment import LinkEnrichmentService
from curator.enrichment.metadata import MetadataScraper
from curator.enrichment.pipeline import EnrichmentPipeline
from curator.enrichment.screenshot import ScreenshotResult, ScreenshotService

__all__ = [
    "EnrichmentConfig",
    "EnrichmentPipeline",
    "LinkEnrichmentService",
    "MetadataScraper",
    "ScreenshotResult",
    "ScreenshotService",
]
