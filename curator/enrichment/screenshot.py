"""
Page screenshots through an external screenshot API.

When capture fails (missing key, API error) the entry's OG image stands in
as its screenshot, as long as it has none yet.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import httpx

from curator.enrichment.config import EnrichmentConfig
from curator.entries.repository import EntryRepository
from curator.entries.schemas import Entry
from curator.errors import ScreenshotConfigurationError, ScreenshotError

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ScreenshotResult:
    screenshot_url: str
    captured_at: datetime
    fallback: bool = False


class ScreenshotService:
    """Capture screenshots and record them on entries."""

    def __init__(
        self,
        entries: EntryRepository,
        config: EnrichmentConfig | None = None,
    ) -> None:
        self._entries = entries
        self._config = config or EnrichmentConfig()

    def is_fresh(self, entry: Entry, now: datetime | None = None) -> bool:
        """True when the entry has a screenshot newer than the staleness window."""
        if not entry.screenshot_url or entry.screenshot_captured_at is None:
            return False
        age = (now or _utc_now()) - entry.screenshot_captured_at
        return age < timedelta(days=self._config.screenshot_stale_days)

    async def capture_url(self, url: str) -> ScreenshotResult:
        """
        Request a screenshot for ``url``.

        Raises:
            ScreenshotConfigurationError: if no API key is configured
            ScreenshotError: on timeouts, HTTP errors or unusable responses
        """
        key = self._config.screenshot_api_key
        if key is None or not key.get_secret_value():
            raise ScreenshotConfigurationError("Screenshot API key is not configured")

        params = {
            "token": key.get_secret_value(),
            "url": url,
            "width": self._config.screenshot_width,
            "height": self._config.screenshot_height,
            "thumbnail_width": self._config.thumbnail_width,
            "output": "json",
            "fresh": "true",
        }
        try:
            async with httpx.AsyncClient(timeout=self._config.screenshot_timeout) as client:
                response = await client.get(self._config.screenshot_api_url, params=params)
        except httpx.TimeoutException as e:
            raise ScreenshotError(f"Screenshot request timed out: {e}") from e
        except httpx.TransportError as e:
            raise ScreenshotError(f"Connection failed: {e}") from e

        if response.status_code >= 400:
            raise ScreenshotError(f"Screenshot API error: {response.status_code}")

        screenshot_url = None
        if "application/json" in response.headers.get("content-type", ""):
            try:
                data = response.json()
            except ValueError as e:
                raise ScreenshotError("Invalid JSON response from screenshot API") from e
            if isinstance(data, dict):
                screenshot_url = data.get("screenshot") or data.get("url") or data.get("image")
        else:
            screenshot_url = response.headers.get("location")

        if not screenshot_url:
            raise ScreenshotError("No screenshot URL in response")
        return ScreenshotResult(screenshot_url=screenshot_url, captured_at=_utc_now())

    async def capture(self, entry: Entry, force: bool = False) -> ScreenshotResult | None:
        """Capture and store a screenshot for an entry.

        Skips entries with a fresh screenshot unless ``force``. Failures fall
        back to the OG image and return None when there is nothing to use.
        """
        if not force and self.is_fresh(entry):
            logger.debug("Entry %s has a fresh screenshot, skipping", entry.id)
            return None

        try:
            result = await self.capture_url(entry.url_canonical)
        except ScreenshotError as e:
            logger.warning("Screenshot failed for entry %s: %s", entry.id, e)
            return await self._fallback_to_og_image(entry)

        await self._entries.update_fields(
            entry.id,
            {"screenshot_url": result.screenshot_url, "screenshot_captured_at": result.captured_at},
        )
        return result

    async def _fallback_to_og_image(self, entry: Entry) -> ScreenshotResult | None:
        if not entry.og_image_url or entry.screenshot_url:
            return None
        logger.info("Using OG image as screenshot for entry %s", entry.id)
        result = ScreenshotResult(
            screenshot_url=entry.og_image_url, captured_at=_utc_now(), fallback=True
        )
        await self._entries.update_fields(
            entry.id,
            {"screenshot_url": result.screenshot_url, "screenshot_captured_at": result.captured_at},
        )
        return result
