"""
Adapter output schema.

Every source adapter maps its raw API items to NormalizedItem before
anything is persisted, so the persistence step is identical across kinds.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, field_validator


def parse_datetime(value: Any) -> datetime | None:
    """Best-effort timestamp parsing for API payloads.

    Accepts datetimes, unix timestamps and ISO 8601 strings (with a Z
    suffix). Anything else yields None rather than raising.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class NormalizedItem(BaseModel):
    """One item from an external source, ready for the persistence step."""

    url: str = Field(..., min_length=1, description="Raw item URL, canonicalised on save")
    title: str | None = None
    description: str | None = None
    image_url: str | None = None
    author_name: str | None = None
    published_at: datetime | None = None
    tags: list[str] = Field(default_factory=list)
    raw_payload: dict[str, Any] = Field(default_factory=dict)

    @field_validator("title", "description", "author_name", "image_url", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("tags")
    @classmethod
    def dedupe_tags(cls, v: list[str]) -> list[str]:
        seen: list[str] = []
        for tag in v:
            if tag and tag not in seen:
                seen.append(tag)
        return seen


def slugify(value: str) -> str:
    """Lowercase and join whitespace runs with hyphens ("Ars Technica" -> "ars-technica")."""
    return "-".join(value.lower().split())
