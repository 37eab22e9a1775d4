"""Configuration for metadata scraping, link enrichment and screenshots."""

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnrichmentConfig(BaseSettings):
    """Settings for the enrichment pipeline.

    Settings can be overridden via environment variables prefixed with ENRICHMENT_.

    Example:
        ENRICHMENT_STALE_AFTER_DAYS=14
        ENRICHMENT_SCREENSHOT_API_KEY=...
    """

    model_config = SettingsConfigDict(
        env_prefix="ENRICHMENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Page fetching
    fetch_timeout: float = Field(default=15.0, ge=1.0, le=120.0)
    fetch_retries: int = Field(default=1, ge=0, le=5)
    user_agent: str = "Mozilla/5.0 (compatible; Curator Link Enrichment Bot)"
    max_body_chars: int = Field(
        default=200_000,
        ge=1000,
        description="body_html/body_text are truncated to this many characters",
    )

    # Link enrichment
    words_per_minute: int = Field(default=200, ge=50, le=1000)

    # Stale sweep
    stale_after_days: int = Field(default=30, ge=1)
    sweep_batch_size: int = Field(default=500, ge=1, le=10_000)

    # Screenshots
    screenshot_api_url: str = "https://shot.screenshotapi.net/screenshot"
    screenshot_api_key: SecretStr | None = None
    screenshot_timeout: float = Field(default=30.0, ge=1.0, le=120.0)
    screenshot_width: int = Field(default=1280, ge=320)
    screenshot_height: int = Field(default=800, ge=240)
    thumbnail_width: int = Field(default=640, ge=64)
    screenshot_stale_days: int = Field(default=7, ge=1)
