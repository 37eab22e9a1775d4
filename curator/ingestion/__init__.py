"""
Ingestion: URL canonicalisation, the upsert engine, rate limits and the
source adapters that feed content records into the enrichment pipeline.
"""

from curator.ingestion.base_adapter import AdapterStats, RunOutcome, SourceAdapter
from curator.ingestion.canonical import canonicalize, try_canonicalize
from curator.ingestion.config import IngestionConfig
from curator.ingestion.rate_limiter import GlobalSearchQuota, SourceRateLimiter
from curator.ingestion.registry import ADAPTERS, adapter_for
from curator.ingestion.schemas import NormalizedItem
from curator.ingestion.upsert import UpsertEngine

__all__ = [
    "ADAPTERS",
    "AdapterStats",
    "GlobalSearchQuota",
    "IngestionConfig",
    "NormalizedItem",
    "RunOutcome",
    "SourceAdapter",
    "SourceRateLimiter",
    "UpsertEngine",
    "adapter_for",
    "canonicalize",
    "try_canonicalize",
]
