"""
HTTP infrastructure layer with retry logic and API key rotation.

Provides:
- APIKeyRotator: Round-robin rotation over comma-separated API keys
- RetryConfig: Exponential backoff configuration
- HTTPClient: Async HTTP client with automatic retry and key rotation

Adapters and enrichment services share this layer so HTTP concerns
(retries, backoff, key rotation, user agent) stay out of the mapping code.
Errors raised here are ExternalServiceError subclasses, so once the
in-request retries are spent the job policy takes over.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any

import httpx

from curator.errors import ExternalServiceError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


@dataclass
class APIKeyRotator:
    """
    Round-robin API key rotation.

    A source's ``api_key`` config may hold several comma-separated keys to
    spread quota; each request takes the next one.

    Example:
        rotator = APIKeyRotator.from_value("key1,key2,key3")
        key = await rotator.get_key()
    """

    keys: list[str]
    _current_index: int = field(default=0, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @classmethod
    def from_value(cls, value: str | None) -> "APIKeyRotator | None":
        """Build from a comma-separated value; None when no key is present."""
        if not value:
            return None
        keys = [k.strip() for k in str(value).split(",") if k.strip()]
        if not keys:
            return None
        return cls(keys=keys)

    async def get_key(self) -> str:
        """Next key in rotation."""
        async with self._lock:
            key = self.keys[self._current_index]
            self._current_index = (self._current_index + 1) % len(self.keys)
            return key

    @property
    def key_count(self) -> int:
        return len(self.keys)


@dataclass
class RetryConfig:
    """
    Exponential backoff configuration for HTTP retries.

    Formula: min(max_backoff, base_delay * 2^attempt) * (1 + random(0, jitter_factor))
    """

    max_retries: int = 2
    max_backoff_seconds: float = 30.0
    base_delay: float = 1.0
    jitter_factor: float = 0.1

    def calculate_backoff(self, attempt: int) -> float:
        """Backoff in seconds for retry ``attempt`` (0-indexed)."""
        delay = min(self.base_delay * (2**attempt), self.max_backoff_seconds)
        return delay + delay * self.jitter_factor * random.random()

    def is_retryable_status(self, status_code: int) -> bool:
        return status_code in RETRYABLE_STATUS_CODES


class HTTPClientError(ExternalServiceError):
    """Request failed: non-2xx response or transport error."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class RateLimitError(HTTPClientError):
    """Raised when rate limit is hit and all retries exhausted."""


class HTTPClient:
    """
    Async HTTP client with retry logic and API key rotation.

    Example:
        async with HTTPClient(RetryConfig(max_retries=2)) as client:
            response = await client.get(
                "https://serpapi.com/search.json",
                params={"engine": "google_news", "q": "python"},
                api_key_rotator=rotator,
                api_key_param="api_key",
            )
    """

    def __init__(
        self,
        retry_config: RetryConfig | None = None,
        timeout: float = 30.0,
        user_agent: str | None = None,
        follow_redirects: bool = True,
    ):
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self.user_agent = user_agent
        self.follow_redirects = follow_redirects
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HTTPClient":
        headers = {"User-Agent": self.user_agent} if self.user_agent else None
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            headers=headers,
            follow_redirects=self.follow_redirects,
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """GET with retry. See _request_with_retry for keyword arguments."""
        return await self._request_with_retry("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        """POST with retry. See _request_with_retry for keyword arguments."""
        return await self._request_with_retry("POST", url, **kwargs)

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
        api_key_rotator: APIKeyRotator | None = None,
        api_key_header: str | None = None,
        api_key_prefix: str = "",
        api_key_param: str | None = None,
    ) -> httpx.Response:
        """
        Execute a request, retrying 429/5xx responses and transport errors.

        Raises:
            RateLimitError: 429 after retries are exhausted
            HTTPClientError: any other failure
        """
        if not self._client:
            raise RuntimeError("HTTPClient must be used as async context manager")

        attempts = self.retry_config.max_retries + 1

        for attempt in range(attempts):
            request_headers = dict(headers) if headers else {}
            request_params = dict(params) if params else {}

            if api_key_rotator:
                api_key = await api_key_rotator.get_key()
                if api_key_header:
                    request_headers[api_key_header] = f"{api_key_prefix}{api_key}"
                elif api_key_param:
                    request_params[api_key_param] = api_key

            try:
                response = await self._client.request(
                    method,
                    url,
                    params=request_params or None,
                    headers=request_headers or None,
                    json=json_body,
                )
            except (httpx.TimeoutException, httpx.TransportError) as e:
                if attempt < attempts - 1:
                    backoff = self.retry_config.calculate_backoff(attempt)
                    logger.warning(
                        f"Retryable error {type(e).__name__} for {url}, "
                        f"attempt {attempt + 1}/{attempts}, backing off {backoff:.2f}s"
                    )
                    await asyncio.sleep(backoff)
                    continue
                raise HTTPClientError(
                    f"Request to {url} failed after {attempt + 1} attempts: {e}"
                ) from e

            if self.retry_config.is_retryable_status(response.status_code):
                if attempt < attempts - 1:
                    backoff = self.retry_config.calculate_backoff(attempt)
                    logger.warning(
                        f"Retryable status {response.status_code} from {url}, "
                        f"attempt {attempt + 1}/{attempts}, backing off {backoff:.2f}s"
                    )
                    await asyncio.sleep(backoff)
                    continue

                error_cls = RateLimitError if response.status_code == 429 else HTTPClientError
                raise error_cls(
                    f"Request to {url} failed with status {response.status_code} "
                    f"after {attempt + 1} attempts",
                    status_code=response.status_code,
                    response_body=response.text,
                )

            if response.status_code >= 400:
                raise HTTPClientError(
                    f"Request to {url} failed with status {response.status_code}",
                    status_code=response.status_code,
                    response_body=response.text,
                )

            return response

        raise HTTPClientError(f"Request to {url} failed after {attempts} attempts")
