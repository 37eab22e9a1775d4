"""Configuration for AI editorialisation."""

import math

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class EditorialisationConfig(BaseSettings):
    """Settings for the AI editorialisation stage.

    Settings can be overridden via environment variables prefixed with EDITORIALISATION_.

    Example:
        EDITORIALISATION_OPENAI_API_KEY=sk-...
        EDITORIALISATION_MONTHLY_TOKEN_LIMIT=5000000
    """

    model_config = SettingsConfigDict(
        env_prefix="EDITORIALISATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Provider
    openai_api_key: SecretStr | None = Field(default=None, description="OpenAI API key")
    model: str = Field(default="gpt-4o-mini", description="Chat completion model")
    max_tokens: int = Field(default=800, ge=64, le=8192)
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    timeout: float = Field(default=30.0, ge=1.0, le=300.0, description="Request timeout in seconds")

    # Eligibility
    min_text_length: int = Field(
        default=200,
        ge=0,
        description="Minimum characters of extracted text before an entry is sent",
    )
    max_prompt_text_length: int = Field(default=4000, ge=500)

    # Budget
    monthly_token_limit: int = Field(default=10_000_000, ge=1)
    daily_token_limit: int | None = Field(
        default=None,
        ge=1,
        description="Soft daily cap; defaults to monthly limit / 31",
    )

    # Circuit breaker
    circuit_failure_threshold: int = Field(default=5, ge=1, le=50)
    circuit_recovery_timeout: float = Field(default=60.0, ge=1.0, le=600.0)

    @property
    def effective_daily_limit(self) -> int:
        if self.daily_token_limit is not None:
            return self.daily_token_limit
        return max(1, math.ceil(self.monthly_token_limit / 31))
