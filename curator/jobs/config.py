"""Configuration for job queues and workers."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class JobsConfig(BaseSettings):
    """Settings for the Redis Streams job runtime.

    Settings can be overridden via environment variables prefixed with JOBS_.

    Example:
        JOBS_QUEUES='["ingestion", "enrichment"]'
        JOBS_IDLE_TIMEOUT_MS=300000
    """

    model_config = SettingsConfigDict(
        env_prefix="JOBS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    stream_prefix: str = Field(default="curator:jobs", description="Stream name prefix")
    consumer_group: str = Field(default="curator_workers")
    max_stream_length: int = Field(default=100_000, ge=1000)
    scheduled_key: str = Field(
        default="curator:jobs:scheduled",
        description="Sorted set holding delayed jobs scored by due time",
    )

    queues: list[str] = Field(
        default=["ingestion", "enrichment", "editorialisation", "screenshots", "low", "default"],
        description="Queues a worker consumes",
    )
    batch_size: int = Field(default=10, ge=1, le=100)
    block_ms: int = Field(default=5000, ge=100)
    promote_interval_seconds: float = Field(default=1.0, gt=0.0)
    promote_batch_size: int = Field(default=100, ge=1)

    idle_timeout_ms: int = Field(default=120_000, ge=1000)
    max_delivery_attempts: int = Field(default=3, ge=1)
