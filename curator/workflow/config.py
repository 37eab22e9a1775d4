"""Configuration for the workflow pause registry."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class WorkflowConfig(BaseSettings):
    """Settings for pause lookups."""

    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_",
        case_sensitive=False,
        extra="ignore",
    )

    cache_ttl_seconds: float = Field(
        default=5.0,
        ge=0.0,
        le=60.0,
        description="How long a process reuses its snapshot of active pauses (0 = no caching)",
    )
