"""Tests for JobWorker message settlement."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from curator.jobs.runner import JobOutcome, JobResult
from curator.jobs.schemas import Job
from curator.jobs.worker import JobWorker


@pytest.fixture
def runner():
    return AsyncMock()


@pytest.fixture
def worker(services, runner) -> JobWorker:
    return JobWorker(services, AsyncMock(), "redis://unused", queues=["enrichment"], runner=runner)


@pytest.fixture
def queue():
    return MagicMock(ack=AsyncMock(), nack=AsyncMock())


@pytest.mark.asyncio
@pytest.mark.parametrize("outcome", [JobOutcome.SUCCESS, JobOutcome.RETRIED, JobOutcome.DISCARDED])
async def test_settled_jobs_are_acked(worker, runner, queue, outcome):
    runner.run.return_value = JobResult(outcome)
    job = Job(name="scrape_metadata", record_id=1, message_id="1-0")

    assert await worker.process(queue, job) is outcome

    queue.ack.assert_awaited_once_with("1-0")
    queue.nack.assert_not_called()


@pytest.mark.asyncio
async def test_dead_jobs_are_dead_lettered(worker, runner, queue):
    runner.run.return_value = JobResult(JobOutcome.DEAD, "EnrichmentError: timeout")
    job = Job(name="scrape_metadata", record_id=1, message_id="1-0")

    await worker.process(queue, job)

    queue.nack.assert_awaited_once_with("1-0", "EnrichmentError: timeout")
    queue.ack.assert_not_called()


@pytest.mark.asyncio
async def test_consume_runs_jobs_until_stopped(worker, runner):
    jobs = [Job(name="sweep_stale", message_id=f"{i}-0") for i in range(3)]
    runner.run.return_value = JobResult(JobOutcome.SUCCESS)

    async def consume(count, block_ms):
        for job in jobs:
            yield job

    queue = MagicMock(ack=AsyncMock(), consume=consume)
    worker._running = True

    await worker._consume(queue)

    assert runner.run.await_count == 3
    assert queue.ack.await_count == 3


def test_defaults_to_configured_queues(services):
    worker = JobWorker(services, AsyncMock(), "redis://unused")

    assert "enrichment" in worker._queue_names
    assert worker._runner._enqueuer is worker._enqueuer
