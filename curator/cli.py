"""
Command-line interface for curator.

Provides commands to run the job worker, initialize the database, run or
enqueue source imports, and manage workflow pauses.

Usage:
    curator worker                      # Consume all configured queues
    curator init-db                     # Create tables
    curator run-source 42               # Run one source inline
    curator run-due                     # Enqueue runs for due sources
    curator pause enrichment --by ops   # Pause a workflow
    curator resume 7 --by ops --backlog # Resume and re-enqueue held work
"""

import asyncio
import json
import signal
import sys
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import click
import redis.asyncio as redis

from curator.config.settings import get_settings
from curator.observability.logging import setup_logging
from curator.observability.metrics import get_metrics


@asynccontextmanager
async def _services() -> AsyncIterator:
    """Connected database and Redis client wrapped in a Services container."""
    from curator.jobs.queue import JobEnqueuer
    from curator.services.container import Services
    from curator.storage.database import Database

    settings = get_settings()
    db = Database()
    await db.connect()
    client = redis.from_url(str(settings.redis_url), encoding="utf-8", decode_responses=True)
    services = Services.build(db, JobEnqueuer(client), settings=settings)
    try:
        yield services
    finally:
        await services.close()
        await client.close()
        await db.close()


def _cli_context(job_name: str):
    from curator.jobs.context import JobContext
    from curator.jobs.schemas import queue_for

    return JobContext(job_id=f"cli-{uuid.uuid4().hex[:8]}", job_name=job_name, queue=queue_for(job_name))


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Curator - content ingestion and enrichment pipeline."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()


@main.command()
@click.option("--queue", "queues", multiple=True, help="Queue to consume (can repeat)")
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
def worker(queues: tuple[str, ...], metrics: bool, metrics_port: int | None) -> None:
    """Run the job worker."""
    from curator.jobs.worker import JobWorker

    async def run():
        settings = get_settings()
        if metrics:
            get_metrics().start_server(port=metrics_port)

        async with _services() as services:
            job_worker = JobWorker(
                services,
                services.enqueuer.client,
                str(settings.redis_url),
                queues=list(queues) or None,
            )

            loop = asyncio.get_event_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, lambda: asyncio.create_task(job_worker.stop()))

            await job_worker.start()

    asyncio.run(run())


@main.command("init-db")
def init_db() -> None:
    """Initialize the database schema."""
    from curator.storage.database import Database
    from curator.storage.schema import create_all_tables

    async def run():
        db = Database()
        await db.connect()
        try:
            await create_all_tables(db)
            click.echo("Database initialized successfully")
        finally:
            await db.close()

    asyncio.run(run())


@main.command("run-source")
@click.argument("source_id", type=int)
@click.option("--enqueue", "enqueue_only", is_flag=True, help="Enqueue instead of running inline")
def run_source(source_id: int, enqueue_only: bool) -> None:
    """Run one source's adapter now."""
    from curator.ingestion.registry import adapter_for

    async def run():
        async with _services() as services:
            source = await services.sources.get_by_id(source_id)
            if source is None:
                click.echo(click.style(f"Source {source_id} not found", fg="red"))
                sys.exit(1)

            if enqueue_only:
                job_id = await services.enqueuer.enqueue("run_source", source.id, kind=source.kind.value)
                click.echo(f"Enqueued run_source({source.id}) as {job_id}")
                return

            ctx = _cli_context("run_source")
            try:
                outcome = await adapter_for(source.kind, services).run(ctx, source.id)
            finally:
                ctx.clear()

            stats = outcome.stats
            click.echo(f"\n{source.name} ({source.kind.value}): {outcome.status}")
            click.echo("-" * 40)
            click.echo(f"  Fetched: {stats.fetched}")
            click.echo(f"  Created: {stats.created}")
            click.echo(f"  Updated: {stats.updated}")
            click.echo(f"  Failed:  {stats.failed}")

    asyncio.run(run())


@main.command("run-due")
def run_due() -> None:
    """Enqueue adapter runs for every source whose schedule is due."""
    from curator.jobs.scheduling import process_due_sources

    async def run():
        async with _services() as services:
            count = await process_due_sources(services)
            click.echo(f"Enqueued {count} source runs")

    asyncio.run(run())


@main.command("sweep-stale")
@click.option("--dry-run", is_flag=True, help="Show count without resetting")
def sweep_stale(dry_run: bool) -> None:
    """Reset entries enriched too long ago and re-queue their enrichment."""
    from datetime import datetime, timedelta, timezone

    async def run():
        async with _services() as services:
            if dry_run:
                days = services.enrichment_config.stale_after_days
                cutoff = datetime.now(timezone.utc) - timedelta(days=days)
                count = await services.database.fetchval(
                    "SELECT COUNT(*) FROM entries WHERE enrichment_status = 'complete' AND enriched_at < $1",
                    cutoff,
                )
                click.echo(f"\nDry run - would reset {count} entries enriched before {cutoff.isoformat()}")
                return
            count = await services.pipeline.sweep_stale()
            click.echo(f"Reset {count} stale entries")

    asyncio.run(run())


@main.command()
@click.argument("workflow_type")
@click.option("--by", "paused_by", required=True, help="Who is pausing")
@click.option("--tenant", "tenant_id", default=None, type=int, help="Tenant scope (default: global)")
@click.option("--reason", default=None, help="Why the workflow is paused")
def pause(workflow_type: str, paused_by: str, tenant_id: int | None, reason: str | None) -> None:
    """Pause a workflow globally or for one tenant."""
    from curator.workflow.schemas import WorkflowType

    try:
        wtype = WorkflowType(workflow_type)
    except ValueError:
        choices = ", ".join(t.value for t in WorkflowType)
        raise click.BadParameter(f"must be one of: {choices}", param_hint="WORKFLOW_TYPE")

    async def run():
        async with _services() as services:
            p = await services.pauses.pause(wtype, paused_by, tenant_id=tenant_id, reason=reason)
            scope = f"tenant {p.tenant_id}" if p.tenant_id is not None else "all tenants"
            click.echo(f"Paused {p.workflow_type.value} for {scope} (pause {p.id})")

    asyncio.run(run())


@main.command()
@click.argument("pause_id", type=int)
@click.option("--by", "resumed_by", required=True, help="Who is resuming")
@click.option("--backlog", is_flag=True, help="Re-enqueue work held back by the pause")
def resume(pause_id: int, resumed_by: str, backlog: bool) -> None:
    """Resume a paused workflow."""
    from curator.errors import RecordNotFoundError

    async def run():
        async with _services() as services:
            try:
                p = await services.pauses.resume(pause_id, resumed_by, process_backlog=backlog)
            except RecordNotFoundError as e:
                click.echo(click.style(str(e), fg="red"))
                sys.exit(1)
            click.echo(f"Resumed {p.workflow_type.value} (pause {p.id})")

    asyncio.run(run())


@main.command()
@click.option("--tenant", "tenant_id", default=None, type=int, help="Tenant to report for")
def pauses(tenant_id: int | None) -> None:
    """Show which workflows are paused."""

    async def run():
        async with _services() as services:
            summary = await services.pauses.status_summary(tenant_id)

        click.echo("\nWorkflow Status:")
        click.echo("-" * 40)
        for name, status in summary.items():
            if status["paused"]:
                click.echo(click.style(f"  ✗ {name}: paused by {status['paused_by']}", fg="red"))
            else:
                click.echo(click.style(f"  ✓ {name}: running", fg="green"))

    asyncio.run(run())


@main.command()
@click.argument("job_name")
@click.argument("record_id", required=False, type=int)
@click.option("--params", default="{}", help="JSON object of job parameters")
@click.option("--delay", default=0.0, type=float, help="Seconds to wait before running")
def enqueue(job_name: str, record_id: int | None, params: str, delay: float) -> None:
    """Enqueue a job by name."""
    from curator.jobs.handlers import HANDLERS

    if job_name not in HANDLERS:
        raise click.BadParameter(f"must be one of: {', '.join(HANDLERS)}", param_hint="JOB_NAME")
    try:
        job_params = json.loads(params)
    except json.JSONDecodeError as e:
        raise click.BadParameter(str(e), param_hint="--params")

    async def run():
        async with _services() as services:
            job_id = await services.enqueuer.enqueue(job_name, record_id, delay=delay, **job_params)
            click.echo(f"Enqueued {job_name}({record_id}) as {job_id}")

    asyncio.run(run())


@main.command()
@click.option("--tenant", "tenant_id", default=None, type=int, help="Tenant to report AI usage for")
def stats(tenant_id: int | None) -> None:
    """Show enrichment, search quota and AI usage statistics."""

    async def run():
        async with _services() as services:
            by_status = await services.entries.count_by_status()
            quota = await services.search_quota.usage_stats()
            usage = await services.usage.usage_stats(tenant_id)

        click.echo("\nEntries by enrichment status:")
        click.echo("-" * 40)
        for status, count in sorted(by_status.items()):
            click.echo(f"  {status}: {count}")

        click.echo("\nSearch API quota:")
        click.echo("-" * 40)
        click.echo(f"  Month: {quota['monthly_used']}/{quota['monthly_limit']}")
        click.echo(f"  Today: {quota['daily_used']}/{quota['daily_limit']}")

        click.echo("\nAI usage:")
        click.echo("-" * 40)
        click.echo(f"  Month: {usage['monthly']['used']}/{usage['monthly']['limit']} tokens "
                   f"({usage['monthly']['percent_used']}%)")
        click.echo(f"  Today: {usage['daily']['used']}/{usage['daily']['soft_limit']} tokens")
        click.echo(f"  Cost this month: {usage['monthly']['cost_cents']:.2f} cents")

    asyncio.run(run())


@main.command()
def health() -> None:
    """Check health of all dependencies."""
    import structlog
    logger = structlog.get_logger()

    async def check():
        results: dict[str, bool] = {}
        settings = get_settings()

        try:
            client = redis.from_url(str(settings.redis_url))
            results["redis"] = bool(await client.ping())
            await client.close()
        except redis.RedisError as e:
            results["redis"] = False
            logger.error("Redis health check failed", error=str(e))

        from curator.storage.database import Database
        db = Database()
        try:
            await db.connect()
            results["postgres"] = await db.health_check()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))
        finally:
            await db.close()

        from curator.editorialisation.config import EditorialisationConfig
        from curator.enrichment.config import EnrichmentConfig
        results["openai_configured"] = EditorialisationConfig().openai_api_key is not None
        results["screenshot_api_configured"] = EnrichmentConfig().screenshot_api_key is not None

        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)

        all_healthy = True
        for name, status in results.items():
            icon = "✓" if status else "✗"
            color = "green" if status else "red"
            click.echo(click.style(f"  {icon} {name}: {status}", fg=color))
            if name in ("redis", "postgres") and not status:
                all_healthy = False

        click.echo("-" * 40)

        if all_healthy:
            click.echo(click.style("All core services healthy!", fg="green"))
            sys.exit(0)
        else:
            click.echo(click.style("Some services unhealthy!", fg="red"))
            sys.exit(1)

    asyncio.run(check())


if __name__ == "__main__":
    main()
