"""
Job worker - consumes the configured queues and runs jobs.

Runs as a standalone service that:
1. Consumes every configured queue concurrently, one task per queue
2. Promotes delayed jobs (retries with backoff) into their streams
3. Runs each job through the JobRunner
4. Acknowledges the message, or dead-letters it when retries are exhausted
"""

import asyncio
from typing import Any

import redis.asyncio as redis
import structlog

from curator.jobs.config import JobsConfig
from curator.jobs.queue import JobQueue, JobEnqueuer
from curator.jobs.runner import JobOutcome, JobRunner
from curator.jobs.schemas import Job
from curator.observability.metrics import get_metrics

logger = structlog.get_logger(__name__)


class JobWorker:
    """
    Worker that processes jobs from one or more named queues.

    Usage:
        worker = JobWorker(services, redis_client, redis_url)
        await worker.start()  # Runs until stopped
    """

    def __init__(
        self,
        services: Any,
        client: redis.Redis,
        redis_url: str,
        config: JobsConfig | None = None,
        queues: list[str] | None = None,
        runner: JobRunner | None = None,
    ):
        """
        Args:
            services: Container handed to job handlers
            client: Shared Redis client for queues and the enqueuer
            redis_url: Redis URL (used only if a queue must open its own client)
            config: Jobs configuration
            queues: Queue names to consume (defaults to config.queues)
            runner: Job runner (or create one over ``services``)
        """
        self._config = config or JobsConfig()
        self._client = client
        self._redis_url = redis_url
        self._queue_names = queues or self._config.queues
        self._enqueuer = JobEnqueuer(client, self._config)
        self._runner = runner or JobRunner(services, enqueuer=self._enqueuer)
        self._queues: list[JobQueue] = []
        self._tasks: list[asyncio.Task] = []
        self._running = False
        self._metrics = get_metrics()

        logger.info("JobWorker initialized", queues=self._queue_names)

    async def start(self) -> None:
        """Run until stop() is called or a fatal error occurs."""
        self._running = True
        logger.info("Starting job worker")

        for name in self._queue_names:
            queue = JobQueue(name, self._redis_url, config=self._config, client=self._client)
            await queue.connect()
            self._queues.append(queue)

        self._tasks = [asyncio.create_task(self._consume(q), name=f"consume:{q.queue}") for q in self._queues]
        self._tasks.append(asyncio.create_task(self._promote_loop(), name="promote"))

        try:
            await asyncio.gather(*self._tasks)
        except asyncio.CancelledError:
            logger.info("Job worker cancelled")
        except Exception as e:
            logger.error("Job worker error", error=str(e))
            raise
        finally:
            await self._cleanup()

    async def stop(self) -> None:
        """Stop consuming; in-flight jobs finish first."""
        logger.info("Stopping job worker")
        self._running = False
        for task in self._tasks:
            task.cancel()

    async def _cleanup(self) -> None:
        for queue in self._queues:
            await queue.close()
        self._queues = []
        logger.info("Job worker cleaned up")

    async def _consume(self, queue: JobQueue) -> None:
        async for job in queue.consume(
            count=self._config.batch_size,
            block_ms=self._config.block_ms,
        ):
            if not self._running:
                break
            await self.process(queue, job)

    async def process(self, queue: JobQueue, job: Job) -> JobOutcome:
        """Run one job and settle its stream message."""
        result = await self._runner.run(job)
        if result.outcome is JobOutcome.DEAD:
            await queue.nack(job.message_id, result.error)
        else:
            await queue.ack(job.message_id)
        return result.outcome

    async def _promote_loop(self) -> None:
        while self._running:
            try:
                await self._enqueuer.promote_due()
                for queue in self._queues:
                    self._metrics.set_queue_depth(
                        queue.stream_config.stream_name, await queue.get_stream_length()
                    )
            except redis.RedisError as e:
                logger.error("Failed to promote scheduled jobs", error=str(e))
            await asyncio.sleep(self._config.promote_interval_seconds)
