"""
Per-source and global rate limits derived from import run history.

No counters are stored: the limiters count ImportRun rows started inside a
window. Two concurrent invocations can both pass the check; the limit is
advisory and may overshoot by the number of in-flight runs.
"""

import logging
from datetime import datetime, timedelta, timezone

from curator.ingestion.config import IngestionConfig
from curator.sources.repository import ImportRunRepository
from curator.sources.schemas import (
    STATUS_DAILY_RATE_LIMITED,
    STATUS_GLOBAL_RATE_LIMITED,
    Source,
    SourceKind,
)

logger = logging.getLogger(__name__)

SEARCH_API_KINDS = [kind for kind in SourceKind if kind.is_search_api]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SourceRateLimiter:
    """Trailing-window limit on adapter invocations for one source.

    The window defaults to an hour and the limit to
    ``default_rate_limit_per_hour``; a source overrides the limit with
    ``config["rate_limit_per_hour"]``.
    """

    def __init__(
        self,
        import_runs: ImportRunRepository,
        config: IngestionConfig | None = None,
    ) -> None:
        self._runs = import_runs
        self._config = config or IngestionConfig()

    def limit_for(self, source: Source) -> int:
        return source.rate_limit_per_hour or self._config.default_rate_limit_per_hour

    async def used(self, source: Source, now: datetime | None = None) -> int:
        since = (now or _utc_now()) - timedelta(seconds=self._config.rate_limit_window_seconds)
        return await self._runs.count_started_since(source.id, since)

    async def allowed(self, source: Source, now: datetime | None = None) -> bool:
        """False once the source has used its runs for the current window."""
        used = await self.used(source, now)
        limit = self.limit_for(source)
        if used >= limit:
            logger.info("Source %s rate limited (%d/%d runs in window)", source.id, used, limit)
            return False
        return True

    async def remaining(self, source: Source, now: datetime | None = None) -> int:
        return max(0, self.limit_for(source) - await self.used(source, now))


class GlobalSearchQuota:
    """Monthly and daily quota shared by every search-API source."""

    def __init__(
        self,
        import_runs: ImportRunRepository,
        config: IngestionConfig | None = None,
    ) -> None:
        self._runs = import_runs
        self._config = config or IngestionConfig()

    async def _counts(self, now: datetime) -> tuple[int, int]:
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        monthly = await self._runs.count_started_since_for_kinds(SEARCH_API_KINDS, month_start)
        daily = await self._runs.count_started_since_for_kinds(SEARCH_API_KINDS, day_start)
        return monthly, daily

    async def check(self, now: datetime | None = None) -> str | None:
        """The limiting status if the quota is spent, else None.

        The monthly limit is checked first and reported as
        ``global_rate_limited``; the daily soft limit as ``daily_rate_limited``.
        """
        monthly, daily = await self._counts(now or _utc_now())
        if monthly >= self._config.search_api_monthly_limit:
            logger.warning(
                "Search API monthly quota exhausted (%d/%d)",
                monthly, self._config.search_api_monthly_limit,
            )
            return STATUS_GLOBAL_RATE_LIMITED
        if daily >= self._config.effective_daily_limit:
            logger.warning(
                "Search API daily quota exhausted (%d/%d)",
                daily, self._config.effective_daily_limit,
            )
            return STATUS_DAILY_RATE_LIMITED
        return None

    async def usage_stats(self, now: datetime | None = None) -> dict[str, int]:
        monthly, daily = await self._counts(now or _utc_now())
        monthly_limit = self._config.search_api_monthly_limit
        daily_limit = self._config.effective_daily_limit
        return {
            "monthly_used": monthly,
            "monthly_limit": monthly_limit,
            "monthly_remaining": max(0, monthly_limit - monthly),
            "daily_used": daily,
            "daily_limit": daily_limit,
            "daily_remaining": max(0, daily_limit - daily),
        }
