"""Tests for ScreenshotService."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest
import respx

from curator.enrichment.config import EnrichmentConfig
from curator.enrichment.screenshot import ScreenshotService
from curator.errors import ScreenshotConfigurationError, ScreenshotError

API_URL = "https://shot.screenshotapi.net/screenshot"


@pytest.fixture
def config() -> EnrichmentConfig:
    return EnrichmentConfig(screenshot_api_key="shot-key")


@pytest.fixture
def service(entries, config) -> ScreenshotService:
    return ScreenshotService(entries, config)


class TestCaptureUrl:
    @pytest.mark.asyncio
    @respx.mock
    async def test_json_response(self, service):
        route = respx.get(API_URL).mock(
            return_value=httpx.Response(200, json={"screenshot": "https://cdn.example.com/s.png"})
        )

        result = await service.capture_url("https://example.com/a")

        assert result.screenshot_url == "https://cdn.example.com/s.png"
        assert result.fallback is False
        params = route.calls.last.request.url.params
        assert params["token"] == "shot-key"
        assert params["url"] == "https://example.com/a"
        assert params["output"] == "json"

    @pytest.mark.asyncio
    @respx.mock
    async def test_location_header_response(self, service):
        respx.get(API_URL).mock(
            return_value=httpx.Response(
                200, headers={"Content-Type": "image/png", "Location": "https://cdn.example.com/l.png"}
            )
        )

        result = await service.capture_url("https://example.com/a")

        assert result.screenshot_url == "https://cdn.example.com/l.png"

    @pytest.mark.asyncio
    async def test_missing_key(self, entries):
        with pytest.raises(ScreenshotConfigurationError):
            await ScreenshotService(entries, EnrichmentConfig()).capture_url("https://example.com/a")

    @pytest.mark.asyncio
    @respx.mock
    async def test_api_error(self, service):
        respx.get(API_URL).mock(return_value=httpx.Response(500))

        with pytest.raises(ScreenshotError, match="500"):
            await service.capture_url("https://example.com/a")

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout(self, service):
        respx.get(API_URL).mock(side_effect=httpx.ReadTimeout("slow"))

        with pytest.raises(ScreenshotError, match="timed out"):
            await service.capture_url("https://example.com/a")

    @pytest.mark.asyncio
    @respx.mock
    async def test_json_without_url(self, service):
        respx.get(API_URL).mock(return_value=httpx.Response(200, json={"status": "queued"}))

        with pytest.raises(ScreenshotError, match="No screenshot URL"):
            await service.capture_url("https://example.com/a")


class TestCapture:
    @pytest.mark.asyncio
    @respx.mock
    async def test_stores_screenshot(self, service, entries, make_entry):
        respx.get(API_URL).mock(return_value=httpx.Response(200, json={"url": "https://cdn.example.com/s.png"}))
        entry = make_entry()

        result = await service.capture(entry)

        stored = entries.entries[entry.id]
        assert stored.screenshot_url == "https://cdn.example.com/s.png"
        assert stored.screenshot_captured_at == result.captured_at

    @pytest.mark.asyncio
    async def test_fresh_screenshot_skipped(self, service, make_entry):
        entry = make_entry(
            screenshot_url="https://cdn.example.com/old.png",
            screenshot_captured_at=datetime.now(timezone.utc) - timedelta(days=1),
        )

        assert await service.capture(entry) is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_force_recaptures_fresh_screenshot(self, service, entries, make_entry):
        respx.get(API_URL).mock(return_value=httpx.Response(200, json={"image": "https://cdn.example.com/new.png"}))
        entry = make_entry(
            screenshot_url="https://cdn.example.com/old.png",
            screenshot_captured_at=datetime.now(timezone.utc) - timedelta(days=1),
        )

        await service.capture(entry, force=True)

        assert entries.entries[entry.id].screenshot_url == "https://cdn.example.com/new.png"

    def test_stale_screenshot_is_not_fresh(self, service, make_entry):
        entry = make_entry(
            screenshot_url="https://cdn.example.com/old.png",
            screenshot_captured_at=datetime.now(timezone.utc) - timedelta(days=8),
        )

        assert service.is_fresh(entry) is False

    @pytest.mark.asyncio
    async def test_failure_falls_back_to_og_image(self, entries, make_entry):
        service = ScreenshotService(entries, EnrichmentConfig())
        entry = make_entry(og_image_url="https://example.com/og.jpg")

        result = await service.capture(entry)

        assert result.fallback is True
        assert entries.entries[entry.id].screenshot_url == "https://example.com/og.jpg"

    @pytest.mark.asyncio
    @respx.mock
    async def test_json_array_falls_back_to_og_image(self, service, entries, make_entry):
        respx.get(API_URL).mock(return_value=httpx.Response(200, json=[]))
        entry = make_entry(og_image_url="https://example.com/og.jpg")

        result = await service.capture(entry)

        assert result.fallback is True
        assert entries.entries[entry.id].screenshot_url == "https://example.com/og.jpg"

    @pytest.mark.asyncio
    async def test_failure_without_og_image(self, entries, make_entry):
        service = ScreenshotService(entries, EnrichmentConfig())
        entry = make_entry()

        assert await service.capture(entry) is None
        assert entries.entries[entry.id].screenshot_url is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_fallback_keeps_existing_screenshot(self, service, entries, make_entry):
        respx.get(API_URL).mock(return_value=httpx.Response(503))
        entry = make_entry(
            og_image_url="https://example.com/og.jpg",
            screenshot_url="https://cdn.example.com/old.png",
            screenshot_captured_at=datetime.now(timezone.utc) - timedelta(days=30),
        )

        assert await service.capture(entry) is None
        assert entries.entries[entry.id].screenshot_url == "https://cdn.example.com/old.png"
