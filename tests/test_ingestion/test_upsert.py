"""Tests for the upsert engine."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from curator.entries.schemas import Category, EntryKind
from curator.errors import ConfigurationError, DuplicateRecordError
from curator.ingestion.upsert import UpsertEngine, title_from_url
from curator.sources.schemas import SourceKind


@pytest.fixture
def category() -> Category:
    return Category(id=5, tenant_id=1, site_id=10, key="news", name="News")


@pytest.fixture
def engine(entries, enqueuer, ingestion_config) -> UpsertEngine:
    return UpsertEngine(entries, enqueuer, ingestion_config)


class TestTitleFromUrl:
    def test_path_to_sentence(self):
        assert title_from_url("https://x.com/blog/my-first_post") == "Blog my first post"

    def test_root_is_untitled(self):
        assert title_from_url("https://x.com/") == "Untitled"


class TestUpsert:
    @pytest.mark.asyncio
    async def test_creates_pending_entry_and_enqueues_scrape(self, engine, entries, enqueuer, category):
        entry, created = await engine.upsert_with_outcome(
            1, category, "https://Example.com/news/big-story?utm_source=rss"
        )

        assert created is True
        assert entry.url_canonical == "https://example.com/news/big-story"
        assert entry.url_raw == "https://Example.com/news/big-story?utm_source=rss"
        assert entry.title == "News big story"
        assert entry.category_id == 5
        assert entry.tags == ["source:manual"]
        assert entry.raw_payload == {
            "url": "https://Example.com/news/big-story?utm_source=rss",
            "ingested_via": "manual",
            "title_source": "url",
        }
        assert enqueuer.ids_for("scrape_metadata") == [entry.id]

    @pytest.mark.asyncio
    async def test_second_upsert_of_variant_returns_same_entry(self, engine, entries, enqueuer, category):
        first = await engine.upsert(1, category, "https://example.com/a")
        second = await engine.upsert(1, category, "https://EXAMPLE.com/a/?utm_medium=email#x")

        assert second.id == first.id
        assert len(entries.entries) == 1
        assert enqueuer.names() == ["scrape_metadata"]

    @pytest.mark.asyncio
    async def test_existing_entry_gets_source_attached(self, engine, entries, category, make_source):
        source = make_source(SourceKind.RSS)
        first = await engine.upsert(1, category, "https://example.com/a")

        again = await engine.upsert(1, category, "https://example.com/a", source=source)

        assert again.id == first.id
        assert again.source_id == source.id
        assert entries.entries[first.id].source_id == source.id

    @pytest.mark.asyncio
    async def test_source_kind_recorded_on_create(self, engine, category, make_source):
        source = make_source(SourceKind.RSS)

        entry = await engine.upsert(1, category, "https://example.com/a", source=source)

        assert entry.source_id == source.id
        assert entry.tags == ["source:rss"]
        assert entry.raw_payload["ingested_via"] == "rss"

    @pytest.mark.asyncio
    async def test_entry_kinds_are_separate_records(self, engine, entries, category):
        feed = await engine.upsert(1, category, "https://example.com/tool")
        listing = await engine.upsert(1, category, "https://example.com/tool", entry_kind=EntryKind.DIRECTORY)

        assert feed.id != listing.id
        assert len(entries.entries) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", [None, "", "   "])
    async def test_blank_url_creates_nothing(self, engine, entries, enqueuer, category, url):
        assert await engine.upsert_with_outcome(1, category, url) == (None, False)
        assert entries.entries == {}
        assert enqueuer.jobs == []

    @pytest.mark.asyncio
    async def test_invalid_url_creates_nothing(self, engine, entries, category):
        assert await engine.upsert(1, category, "ftp://example.com/file") is None
        assert entries.entries == {}

    @pytest.mark.asyncio
    async def test_category_from_other_tenant_rejected(self, engine, category):
        with pytest.raises(ConfigurationError):
            await engine.upsert(2, category, "https://example.com/a")

    @pytest.mark.asyncio
    async def test_concurrent_upserts_yield_one_record(self, engine, entries, enqueuer, category):
        results = await asyncio.gather(
            *(engine.upsert(1, category, "https://example.com/race") for _ in range(5))
        )

        assert len({e.id for e in results}) == 1
        assert len(entries.entries) == 1
        assert enqueuer.ids_for("scrape_metadata") == [results[0].id]


class TestCreateRace:
    @pytest.mark.asyncio
    async def test_lost_race_returns_winner(self, engine, entries, enqueuer, category, make_entry, make_source):
        """A unique violation means someone else inserted; their row is used."""
        source = make_source()
        winner = make_entry("https://example.com/a", category_id=category.id)
        entries.find_by_canonical = AsyncMock(side_effect=[None, await entries.get_by_id(winner.id)])

        entry, created = await engine.upsert_with_outcome(
            1, category, "https://example.com/a", source=source
        )

        assert created is False
        assert entry.id == winner.id
        assert entry.source_id == source.id
        assert entries.entries[winner.id].source_id == source.id
        assert enqueuer.jobs == []

    @pytest.mark.asyncio
    async def test_retries_transient_duplicates(self, engine, entries, enqueuer, category):
        entries.duplicate_inserts = 2

        with patch("curator.ingestion.upsert.asyncio.sleep", new_callable=AsyncMock) as sleep:
            entry, created = await engine.upsert_with_outcome(1, category, "https://example.com/a")

        assert created is True
        assert entries.inserts == 3
        assert sleep.await_count == 2
        assert enqueuer.ids_for("scrape_metadata") == [entry.id]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, engine, entries, category):
        entries.duplicate_inserts = 10

        with patch("curator.ingestion.upsert.asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(DuplicateRecordError):
                await engine.upsert(1, category, "https://example.com/a")

        assert entries.inserts == 3
