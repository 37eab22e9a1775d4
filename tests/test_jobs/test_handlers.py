"""Tests for job handler dispatch."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from curator.entries.schemas import Category, EntryKind
from curator.errors import ConfigurationError, RecordNotFoundError
from curator.jobs.handlers import HANDLERS
from curator.jobs.schemas import JOB_QUEUES, Job
from curator.sources.schemas import SourceKind


@pytest.fixture
def pipeline(services):
    services.pipeline = AsyncMock()
    return services.pipeline


def test_every_routed_job_has_a_handler():
    assert set(HANDLERS) == set(JOB_QUEUES)


class TestRunSource:
    @pytest.mark.asyncio
    async def test_kind_param_selects_adapter(self, ctx, services):
        adapter = MagicMock(run=AsyncMock())
        with patch("curator.jobs.handlers.adapter_for", return_value=adapter) as adapter_for:
            await HANDLERS["run_source"](ctx, services, Job(name="run_source", record_id=3, params={"kind": "hacker_news"}))

        adapter_for.assert_called_once_with(SourceKind.HACKER_NEWS, services)
        adapter.run.assert_awaited_once_with(ctx, 3)

    @pytest.mark.asyncio
    async def test_kind_looked_up_from_source(self, ctx, services, make_source):
        source = make_source(SourceKind.PRODUCT_HUNT)
        adapter = MagicMock(run=AsyncMock())
        with patch("curator.jobs.handlers.adapter_for", return_value=adapter) as adapter_for:
            await HANDLERS["run_source"](ctx, services, Job(name="run_source", record_id=source.id))

        assert adapter_for.call_args.args[0] is SourceKind.PRODUCT_HUNT

    @pytest.mark.asyncio
    async def test_missing_source(self, ctx, services):
        with pytest.raises(RecordNotFoundError):
            await HANDLERS["run_source"](ctx, services, Job(name="run_source", record_id=99))

    @pytest.mark.asyncio
    async def test_unknown_kind(self, ctx, services):
        job = Job(name="run_source", record_id=1, params={"kind": "gopher"})

        with pytest.raises(ConfigurationError):
            await HANDLERS["run_source"](ctx, services, job)

    @pytest.mark.asyncio
    async def test_record_id_required(self, ctx, services):
        with pytest.raises(ConfigurationError):
            await HANDLERS["run_source"](ctx, services, Job(name="run_source"))


@pytest.fixture
def category(categories):
    return categories.add(Category(tenant_id=1, site_id=10, key="tools", name="Tools"))


def upsert_job(name, category, **params):
    return Job(name=name, params={"tenant_id": 1, "category_id": category.id, **params})


class TestUpsertJobs:
    @pytest.mark.asyncio
    async def test_upsert_listing_creates_directory_entry(self, ctx, services, entries, enqueuer, category, make_source):
        source = make_source()
        job = upsert_job("upsert_listing", category, url="https://Tools.example.com/?utm_source=x", source_id=source.id)

        await HANDLERS["upsert_listing"](ctx, services, job)

        (entry,) = entries.entries.values()
        assert entry.entry_kind == EntryKind.DIRECTORY
        assert entry.url_canonical == "https://tools.example.com/"
        assert entry.category_id == category.id
        assert entry.source_id == source.id
        assert (ctx.tenant_id, ctx.site_id) == (1, 10)
        assert enqueuer.ids_for("scrape_metadata") == [entry.id]

    @pytest.mark.asyncio
    async def test_entry_and_listing_are_separate_records(self, ctx, services, entries, category):
        for name in ("upsert_entry", "upsert_listing"):
            await HANDLERS[name](ctx, services, upsert_job(name, category, url="https://example.com/a"))

        assert sorted(e.entry_kind.value for e in entries.entries.values()) == ["directory", "feed"]

    @pytest.mark.asyncio
    async def test_invalid_url_skipped(self, ctx, services, entries, category):
        await HANDLERS["upsert_entry"](ctx, services, upsert_job("upsert_entry", category, url="not a url"))

        assert entries.entries == {}

    @pytest.mark.asyncio
    async def test_missing_category_discarded(self, ctx, services):
        job = Job(name="upsert_entry", params={"tenant_id": 1, "category_id": 404, "url": "https://e.com"})

        with pytest.raises(RecordNotFoundError):
            await HANDLERS["upsert_entry"](ctx, services, job)

    @pytest.mark.asyncio
    async def test_missing_source(self, ctx, services, category):
        with pytest.raises(RecordNotFoundError):
            await HANDLERS["upsert_entry"](
                ctx, services, upsert_job("upsert_entry", category, url="https://e.com", source_id=77)
            )

    @pytest.mark.asyncio
    async def test_params_required(self, ctx, services):
        with pytest.raises(ConfigurationError):
            await HANDLERS["upsert_listing"](ctx, services, Job(name="upsert_listing", params={"url": "https://e.com"}))

    def test_routed_to_ingestion(self):
        assert JOB_QUEUES["upsert_entry"] == JOB_QUEUES["upsert_listing"] == "ingestion"


class TestPipelineJobs:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["scrape_metadata", "enrich_link", "editorialise"])
    async def test_dispatch(self, ctx, services, pipeline, name):
        await HANDLERS[name](ctx, services, Job(name=name, record_id=8))

        getattr(pipeline, name).assert_awaited_once_with(ctx, 8)

    @pytest.mark.asyncio
    async def test_screenshot_force_flag(self, ctx, services, pipeline):
        await HANDLERS["capture_screenshot"](
            ctx, services, Job(name="capture_screenshot", record_id=8, params={"force": True})
        )

        pipeline.capture_screenshot.assert_awaited_once_with(ctx, 8, force=True)

    @pytest.mark.asyncio
    async def test_sweep(self, ctx, services, pipeline):
        await HANDLERS["sweep_stale"](ctx, services, Job(name="sweep_stale"))

        pipeline.sweep_stale.assert_awaited_once_with()


class TestProcessBacklog:
    @pytest.mark.asyncio
    async def test_binds_tenant_and_fans_out(self, ctx, services, enqueuer, make_source):
        make_source(SourceKind.RSS, tenant_id=2)
        job = Job(name="process_backlog", params={"workflow_type": "rss_ingestion", "tenant_id": 2})

        await HANDLERS["process_backlog"](ctx, services, job)

        assert ctx.tenant_id == 2
        assert enqueuer.names() == ["run_source"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("params", [{}, {"workflow_type": "knitting"}])
    async def test_invalid_workflow_type(self, ctx, services, params):
        with pytest.raises(ConfigurationError):
            await HANDLERS["process_backlog"](ctx, services, Job(name="process_backlog", params=params))
