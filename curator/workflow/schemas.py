"""Data models for workflow pauses."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class WorkflowType(str, Enum):
    """Classes of background work an operator can pause."""

    ALL_INGESTION = "all_ingestion"
    RSS_INGESTION = "rss_ingestion"
    SERP_API_INGESTION = "serp_api_ingestion"
    HACKER_NEWS_INGESTION = "hacker_news_ingestion"
    PRODUCT_HUNT_INGESTION = "product_hunt_ingestion"
    AI_PROCESSING = "ai_processing"
    ENRICHMENT = "enrichment"
    EDITORIALISATION = "editorialisation"

    @property
    def umbrella(self) -> "WorkflowType | None":
        """The umbrella type that also pauses this one, if any."""
        return _UMBRELLAS.get(self)

    def covering_types(self) -> list["WorkflowType"]:
        """This type plus its umbrella; a pause on any of them applies."""
        types = [self]
        if self.umbrella is not None:
            types.append(self.umbrella)
        return types


_UMBRELLAS = {
    WorkflowType.RSS_INGESTION: WorkflowType.ALL_INGESTION,
    WorkflowType.SERP_API_INGESTION: WorkflowType.ALL_INGESTION,
    WorkflowType.HACKER_NEWS_INGESTION: WorkflowType.ALL_INGESTION,
    WorkflowType.PRODUCT_HUNT_INGESTION: WorkflowType.ALL_INGESTION,
    WorkflowType.EDITORIALISATION: WorkflowType.AI_PROCESSING,
}

INGESTION_TYPES = frozenset(t for t, u in _UMBRELLAS.items() if u is WorkflowType.ALL_INGESTION)


@dataclass
class WorkflowPause:
    """An operator kill switch. Active while resumed_at is None.

    ``tenant_id`` None means the pause applies to every tenant.
    """

    workflow_type: WorkflowType
    paused_by: str
    tenant_id: int | None = None
    reason: str | None = None
    paused_at: datetime | None = None
    resumed_at: datetime | None = None
    resumed_by: str | None = None
    id: int | None = None

    @property
    def active(self) -> bool:
        return self.resumed_at is None

    @property
    def is_global(self) -> bool:
        return self.tenant_id is None

    def applies_to(self, workflow_type: WorkflowType, tenant_id: int | None) -> bool:
        """True when this active pause blocks ``workflow_type`` for the tenant."""
        if not self.active:
            return False
        if self.workflow_type not in workflow_type.covering_types():
            return False
        return self.tenant_id is None or self.tenant_id == tenant_id
