"""
Retry and discard policy per error kind.

The job runner consults ``policy_for`` for every exception a handler
raises. Entries are checked in order and the first matching class wins, so
specific kinds come before their bases.
"""

from dataclasses import dataclass

from curator.errors import (
    AIApiError,
    AIConfigurationError,
    AIInvalidResponseError,
    AIRateLimitError,
    AITimeoutError,
    ConfigurationError,
    DuplicateRecordError,
    EnrichmentError,
    ExternalServiceError,
    RecordNotFoundError,
)
from curator.queues.backoff import retry_delay


@dataclass(frozen=True)
class Retry:
    """Retry up to ``attempts`` total executions, waiting per ``backoff``."""

    attempts: int = 3
    backoff: str = "exponential"  # exponential, polynomial or fixed
    wait: float = 3.0

    def delay(self, attempt: int) -> float:
        return retry_delay(self.backoff, attempt, base_delay=self.wait)


@dataclass(frozen=True)
class Discard:
    """Drop the job. ``silent`` discards log at debug level only."""

    silent: bool = False


Policy = Retry | Discard

POLICY_TABLE: list[tuple[type[BaseException], Policy]] = [
    (RecordNotFoundError, Discard(silent=True)),
    (AIConfigurationError, Discard()),
    (AIInvalidResponseError, Discard()),
    (ConfigurationError, Discard()),
    (AIRateLimitError, Retry(attempts=5, backoff="fixed", wait=60.0)),
    (AITimeoutError, Retry(attempts=3, backoff="polynomial")),
    (AIApiError, Retry(attempts=3, backoff="polynomial")),
    (DuplicateRecordError, Retry(attempts=3, backoff="fixed", wait=5.0)),
    (EnrichmentError, Retry(attempts=3)),
    (ExternalServiceError, Retry(attempts=3)),
]

DEFAULT_POLICY: Policy = Retry(attempts=3)


def policy_for(exc: BaseException) -> Policy:
    """The policy for an exception raised by a job handler."""
    for exc_type, policy in POLICY_TABLE:
        if isinstance(exc, exc_type):
            return policy
    return DEFAULT_POLICY
