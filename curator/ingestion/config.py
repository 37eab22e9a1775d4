"""Configuration for source adapters, the upsert engine and rate limits."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class IngestionConfig(BaseSettings):
    """Settings for ingestion.

    Settings can be overridden via environment variables prefixed with INGESTION_.

    Example:
        INGESTION_DEFAULT_RATE_LIMIT_PER_HOUR=20
        INGESTION_SEARCH_API_MONTHLY_LIMIT=5000
    """

    model_config = SettingsConfigDict(
        env_prefix="INGESTION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Per-source trailing-window limit (overridable by config["rate_limit_per_hour"])
    default_rate_limit_per_hour: int = Field(default=10, ge=1)
    rate_limit_window_seconds: int = Field(default=3600, ge=60)

    # Shared quota across every search-API source
    search_api_monthly_limit: int = Field(default=1000, ge=1)
    search_api_daily_limit: int | None = Field(
        default=None,
        ge=1,
        description="Soft daily cap; defaults to monthly limit / 31",
    )

    # Upsert race handling
    upsert_max_attempts: int = Field(default=5, ge=1, le=20)

    # HTTP
    http_timeout: float = Field(default=30.0, ge=1.0, le=120.0)
    user_agent: str = "Curator/0.1 (+https://github.com/curator/curator)"

    # Endpoints
    serp_api_url: str = "https://serpapi.com/search.json"
    hacker_news_url: str = "https://hn.algolia.com/api/v1/search"
    product_hunt_url: str = "https://api.producthunt.com/v2/api/graphql"

    @property
    def effective_daily_limit(self) -> int:
        if self.search_api_daily_limit is not None:
            return self.search_api_daily_limit
        return max(1, self.search_api_monthly_limit // 31)
