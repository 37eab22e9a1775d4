"""Data models for sources and import runs."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum


class SourceKind(str, Enum):
    """External source kinds, one adapter each."""

    RSS = "rss"
    SERP_API_GOOGLE_NEWS = "serp_api_google_news"
    SERP_API_REDDIT = "serp_api_reddit"
    HACKER_NEWS = "hacker_news"
    PRODUCT_HUNT = "product_hunt"

    @property
    def family(self) -> str:
        """feed, search_api or community_api."""
        if self is SourceKind.RSS:
            return "feed"
        if self.value.startswith("serp_api"):
            return "search_api"
        return "community_api"

    @property
    def is_search_api(self) -> bool:
        return self.family == "search_api"


class ImportRunStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    FAILING = "failing"
    UNKNOWN = "unknown"


# Statuses written to Source.last_status by adapters
STATUS_SUCCESS = "success"
STATUS_SKIPPED = "skipped"
STATUS_PAUSED = "workflow_paused"
STATUS_RATE_LIMITED = "rate_limited"
STATUS_GLOBAL_RATE_LIMITED = "global_rate_limited"
STATUS_DAILY_RATE_LIMITED = "daily_rate_limited"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Source:
    """Configuration for one external feed or API.

    ``config`` is an opaque per-kind map (feed url, API keys, query,
    max_results, rate_limit_per_hour, editorialise, ...).
    """

    kind: SourceKind
    name: str
    tenant_id: int
    site_id: int
    enabled: bool = True
    config: dict = field(default_factory=dict)
    schedule_interval_seconds: int | None = None
    last_run_at: datetime | None = None
    last_status: str | None = None
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def editorialisation_enabled(self) -> bool:
        return self.config.get("editorialise") is True

    @property
    def rate_limit_per_hour(self) -> int | None:
        value = self.config.get("rate_limit_per_hour")
        try:
            return int(value) if value is not None else None
        except (TypeError, ValueError):
            return None

    def next_run_at(self) -> datetime | None:
        """When the schedule next makes this source due, or None if unscheduled."""
        if not self.schedule_interval_seconds:
            return None
        if self.last_run_at is None:
            return self.created_at or _utc_now()
        return self.last_run_at + timedelta(seconds=self.schedule_interval_seconds)

    def run_due(self, now: datetime | None = None) -> bool:
        """True when the source is enabled, scheduled and past its interval."""
        if not self.enabled:
            return False
        next_run = self.next_run_at()
        if next_run is None:
            return False
        return next_run <= (now or _utc_now())


@dataclass
class ImportRun:
    """One adapter invocation and its item counts."""

    source_id: int
    status: ImportRunStatus = ImportRunStatus.RUNNING
    started_at: datetime = field(default_factory=_utc_now)
    completed_at: datetime | None = None
    items_created: int = 0
    items_updated: int = 0
    items_failed: int = 0
    items_count: int = 0
    error_message: str | None = None
    id: int | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status != ImportRunStatus.RUNNING

    @property
    def successful(self) -> bool:
        return self.status == ImportRunStatus.COMPLETED

    @property
    def duration(self) -> timedelta | None:
        if self.completed_at is None:
            return None
        return self.completed_at - self.started_at


def health_from_runs(runs: list[ImportRun]) -> HealthStatus:
    """Derive source health from its most recent runs (newest first)."""
    recent = runs[:3]
    if not recent:
        return HealthStatus.UNKNOWN
    failures = sum(1 for run in recent if run.status == ImportRunStatus.FAILED)
    if failures == 0:
        return HealthStatus.HEALTHY
    if failures == len(recent):
        return HealthStatus.FAILING
    return HealthStatus.WARNING
