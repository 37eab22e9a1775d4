"""
Exception taxonomy shared by adapters, pipeline stages and the job runtime.

The job runtime decides retry vs discard from these classes (see
curator.jobs.policy), so stages raise the most specific kind they know.
"""


class CuratorError(Exception):
    """Base exception for all pipeline errors."""


class ConfigurationError(CuratorError):
    """Missing credentials or required source configuration. Never retried."""


class ExternalServiceError(CuratorError):
    """Transient failure talking to an upstream service."""


class RecordNotFoundError(CuratorError):
    """A job referenced a record that no longer exists."""

    def __init__(self, model: str, record_id: object):
        super().__init__(f"{model} {record_id} not found")
        self.model = model
        self.record_id = record_id


class InvalidURLError(CuratorError):
    """A URL could not be parsed into a canonical http(s) URL."""


class DuplicateRecordError(CuratorError):
    """A unique constraint rejected an insert (concurrent create)."""


class EnrichmentError(CuratorError):
    """Metadata scrape or link enrichment failed."""


class ScreenshotError(CuratorError):
    """Screenshot capture failed."""


class ScreenshotConfigurationError(ScreenshotError, ConfigurationError):
    """Screenshot API key is not configured."""


# ── AI errors ────────────────────────────────────────────────


class AIError(CuratorError):
    """Base class for language-model API failures."""


class AIApiError(AIError):
    """Generic upstream API failure."""


class AITimeoutError(AIError):
    """The completion request timed out."""


class AIRateLimitError(AIError):
    """The provider rejected the request with a rate limit."""


class AIInvalidResponseError(AIError):
    """The provider returned an empty or unusable response."""


class AIConfigurationError(AIError, ConfigurationError):
    """API key missing or client misconfigured."""
