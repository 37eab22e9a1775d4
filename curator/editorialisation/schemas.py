"""Editorialisation records and the parsed AI editorial result."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

MAX_SUMMARY_LENGTH = 280
MAX_WHY_IT_MATTERS_LENGTH = 500
MAX_SUGGESTED_TAGS = 5
MAX_KEY_TAKEAWAYS = 5
MAX_AUDIENCE_TAGS = 3


class EditorialisationStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Editorialisation:
    """One AI call for one entry. Immutable once completed or failed."""

    entry_id: int
    tenant_id: int
    site_id: int
    prompt_version: str
    prompt_text: str
    status: EditorialisationStatus = EditorialisationStatus.PENDING
    raw_response: str | None = None
    parsed_response: dict[str, Any] = field(default_factory=dict)
    tokens_in: int | None = None
    tokens_out: int | None = None
    tokens_used: int | None = None
    estimated_cost_cents: float | None = None
    model_name: str | None = None
    duration_ms: int | None = None
    error_message: str | None = None
    id: int | None = None
    created_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status != EditorialisationStatus.PENDING


def truncate(text: str, limit: int) -> str:
    """Cut to ``limit`` characters including a trailing ellipsis."""
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


def _string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if v is not None and str(v).strip()]


class EditorialResult(BaseModel):
    """Validated editorial output.

    Over-long fields are truncated and lists capped instead of rejected;
    only a missing summary or why_it_matters makes a response invalid.
    """

    summary: str = Field(..., min_length=1)
    why_it_matters: str = Field(..., min_length=1)
    suggested_tags: list[str] = Field(default_factory=list)
    key_takeaways: list[str] = Field(default_factory=list)
    audience_tags: list[str] = Field(default_factory=list)
    quality_score: float | None = None

    @field_validator("summary", mode="before")
    @classmethod
    def truncate_summary(cls, v: Any) -> Any:
        return truncate(v, MAX_SUMMARY_LENGTH) if isinstance(v, str) else v

    @field_validator("why_it_matters", mode="before")
    @classmethod
    def truncate_why(cls, v: Any) -> Any:
        return truncate(v, MAX_WHY_IT_MATTERS_LENGTH) if isinstance(v, str) else v

    @field_validator("suggested_tags", mode="before")
    @classmethod
    def cap_tags(cls, v: Any) -> list[str]:
        return _string_list(v)[:MAX_SUGGESTED_TAGS]

    @field_validator("key_takeaways", mode="before")
    @classmethod
    def cap_takeaways(cls, v: Any) -> list[str]:
        return _string_list(v)[:MAX_KEY_TAKEAWAYS]

    @field_validator("audience_tags", mode="before")
    @classmethod
    def cap_audience(cls, v: Any) -> list[str]:
        return _string_list(v)[:MAX_AUDIENCE_TAGS]

    @field_validator("quality_score", mode="before")
    @classmethod
    def clamp_score(cls, v: Any) -> float | None:
        if v is None or v == "":
            return None
        try:
            score = float(v)
        except (TypeError, ValueError):
            return None
        return round(min(10.0, max(0.0, score)), 1)
