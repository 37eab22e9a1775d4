"""Circuit breaker around the language-model API.

CLOSED → OPEN → HALF_OPEN → CLOSED. While open, calls fail fast with
CircuitOpenError. LLMClient reports that as AIApiError, so the
editorialise job backs off polynomially until the provider recovers.

Usage:
    breaker = CircuitBreaker(failure_threshold=5, recovery_timeout=60.0, name="openai")
    result = await breaker.call(client.complete, system, user)
"""

import enum
import logging
import time
from typing import Any, Callable, Coroutine, TypeVar

from curator.errors import ExternalServiceError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(enum.Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(ExternalServiceError):
    """Raised when calling through an open circuit breaker."""


class CircuitBreaker:
    """Wraps an async callable with circuit breaker protection.

    - CLOSED: Calls pass through; consecutive failures are counted.
    - OPEN: Calls rejected until ``recovery_timeout`` has elapsed.
    - HALF_OPEN: One probe call. Success closes, failure re-opens.

    Exceptions listed in ``ignore`` propagate without counting as failures
    (a malformed completion says nothing about provider health).

    Args:
        failure_threshold: Consecutive failures before opening circuit.
        recovery_timeout: Seconds before attempting a recovery probe.
        name: Name for logging.
        ignore: Exception types that do not trip the breaker.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        name: str = "circuit_breaker",
        ignore: tuple[type[BaseException], ...] = (),
    ) -> None:
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._name = name
        self._ignore = ignore
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at: float = 0.0

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    async def call(
        self,
        fn: Callable[..., Coroutine[Any, Any, T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Execute ``fn`` through the breaker.

        Raises:
            CircuitOpenError: if the circuit is open and the recovery
                timeout has not elapsed
        """
        if self._state == CircuitState.OPEN:
            if time.monotonic() - self._opened_at < self._recovery_timeout:
                raise CircuitOpenError(f"Circuit breaker {self._name} is open")
            self._state = CircuitState.HALF_OPEN
            logger.info("Circuit breaker %s: OPEN → HALF_OPEN", self._name)

        try:
            result = await fn(*args, **kwargs)
        except self._ignore:
            self._close()
            raise
        except Exception:
            self._record_failure()
            raise

        self._close()
        return result

    def _close(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            logger.info("Circuit breaker %s: HALF_OPEN → CLOSED", self._name)
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0

    def _record_failure(self) -> None:
        self._consecutive_failures += 1

        if self._state == CircuitState.HALF_OPEN:
            self._open()
            logger.warning("Circuit breaker %s: probe failed, re-opening", self._name)
        elif self._consecutive_failures >= self._failure_threshold:
            self._open()
            logger.warning(
                "Circuit breaker %s: opened after %d consecutive failures",
                self._name, self._consecutive_failures,
            )

    def _open(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = time.monotonic()
