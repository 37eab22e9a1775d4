"""OpenAI chat-completion client for editorialisation.

The SDK is imported on first use so the rest of the pipeline runs without
an API key. Provider failures are mapped onto the AI error taxonomy, which
the job policy uses to decide between retrying and discarding.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any

from curator.editorialisation.circuit_breaker import CircuitBreaker, CircuitOpenError
from curator.editorialisation.config import EditorialisationConfig
from curator.errors import (
    AIApiError,
    AIConfigurationError,
    AIInvalidResponseError,
    AIRateLimitError,
    AITimeoutError,
)

logger = logging.getLogger(__name__)


@dataclass
class CompletionResult:
    content: str
    tokens_used: int
    tokens_in: int
    tokens_out: int
    model: str
    duration_ms: int


class LLMClient:
    """JSON-mode chat completions through a circuit breaker.

    Args:
        config: Editorialisation configuration with key, model and limits.
    """

    def __init__(self, config: EditorialisationConfig | None = None) -> None:
        self._config = config or EditorialisationConfig()
        self._client: Any = None
        self._breaker = CircuitBreaker(
            failure_threshold=self._config.circuit_failure_threshold,
            recovery_timeout=self._config.circuit_recovery_timeout,
            name="openai",
            ignore=(AIInvalidResponseError, AIConfigurationError),
        )

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    @property
    def configured(self) -> bool:
        key = self._config.openai_api_key
        return key is not None and bool(key.get_secret_value())

    def _get_client(self) -> Any:
        """Lazy-initialize the OpenAI async client."""
        if self._client is None:
            if not self.configured:
                raise AIConfigurationError(
                    "OpenAI API key not configured (EDITORIALISATION_OPENAI_API_KEY)"
                )
            import openai

            self._client = openai.AsyncOpenAI(
                api_key=self._config.openai_api_key.get_secret_value(),
                timeout=self._config.timeout,
                max_retries=0,
            )
        return self._client

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str | None = None,
    ) -> CompletionResult:
        """
        Run one completion.

        Raises:
            AIConfigurationError: no API key, or the key was rejected
            AITimeoutError: the request timed out
            AIRateLimitError: the provider returned 429
            AIApiError: any other provider failure
            AIInvalidResponseError: the completion was empty

        While the breaker is open, calls fail fast with AIApiError.
        """
        try:
            return await self._breaker.call(self._complete, system_prompt, user_prompt, model)
        except CircuitOpenError as e:
            raise AIApiError(f"AI provider unavailable: {e}") from e

    async def _complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str | None,
    ) -> CompletionResult:
        client = self._get_client()
        import openai

        model = model or self._config.model
        started = time.monotonic()
        try:
            response = await client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                max_tokens=self._config.max_tokens,
                temperature=self._config.temperature,
                response_format={"type": "json_object"},
            )
        except openai.APITimeoutError as e:
            raise AITimeoutError(f"AI request timed out: {e}") from e
        except openai.RateLimitError as e:
            raise AIRateLimitError(f"AI rate limit: {e}") from e
        except openai.AuthenticationError as e:
            raise AIConfigurationError(f"AI credentials rejected: {e}") from e
        except openai.APIError as e:
            message = str(e)
            if "rate limit" in message.lower() or "429" in message:
                raise AIRateLimitError(f"AI rate limit: {message}") from e
            raise AIApiError(f"AI API error: {message}") from e

        duration_ms = int((time.monotonic() - started) * 1000)

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise AIInvalidResponseError("Empty response from AI API")

        usage = response.usage
        tokens_in = getattr(usage, "prompt_tokens", 0) or 0
        tokens_out = getattr(usage, "completion_tokens", 0) or 0
        tokens_used = getattr(usage, "total_tokens", 0) or (tokens_in + tokens_out)

        return CompletionResult(
            content=content,
            tokens_used=tokens_used,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            model=getattr(response, "model", None) or model,
            duration_ms=duration_ms,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
