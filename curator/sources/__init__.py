"""Sources: external feed/API configuration and the import run tracker."""

from curator.sources.repository import ImportRunRepository, SourcesRepository
from curator.sources.schemas import (
    HealthStatus,
    ImportRun,
    ImportRunStatus,
    Source,
    SourceKind,
    health_from_runs,
)

__all__ = [
    "HealthStatus",
    "ImportRun",
    "ImportRunRepository",
    "ImportRunStatus",
    "Source",
    "SourceKind",
    "SourcesRepository",
    "health_from_runs",
]
