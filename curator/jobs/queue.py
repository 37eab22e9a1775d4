"""
Redis Streams job queues.

Streams:
    - '<prefix>:<queue>': one stream per named queue
    - '<prefix>:<queue>:dlq': dead letter stream per queue
    - '<scheduled_key>': sorted set of delayed jobs, scored by due time

Usage:
    enqueuer = JobEnqueuer(redis_client)
    await enqueuer.enqueue("scrape_metadata", entry_id)
    await enqueuer.enqueue("enrich_link", entry_id, delay=30)

    async with JobQueue("enrichment", redis_url) as queue:
        async for job in queue.consume():
            ...
            await queue.ack(job.message_id)
"""

import json
import logging
import time
from typing import Any

import redis.asyncio as redis

from curator.jobs.config import JobsConfig
from curator.jobs.schemas import Job
from curator.queues.base import BaseRedisQueue, StreamConfig
from curator.queues.config import QueueConfig

logger = logging.getLogger(__name__)


def stream_name(config: JobsConfig, queue: str) -> str:
    return f"{config.stream_prefix}:{queue}"


class JobQueue(BaseRedisQueue[Job]):
    """Consumer side of one named queue."""

    def __init__(
        self,
        queue: str,
        redis_url: str,
        config: JobsConfig | None = None,
        client: redis.Redis | None = None,
    ):
        self._config = config or JobsConfig()
        self.queue = queue
        super().__init__(
            redis_url=redis_url,
            queue_config=QueueConfig(
                idle_timeout_ms=self._config.idle_timeout_ms,
                max_delivery_attempts=self._config.max_delivery_attempts,
            ),
            client=client,
        )

    def _get_stream_config(self) -> StreamConfig:
        name = stream_name(self._config, self.queue)
        return StreamConfig(
            stream_name=name,
            consumer_group=self._config.consumer_group,
            dlq_stream_name=f"{name}:dlq",
            max_stream_length=self._config.max_stream_length,
        )

    def _get_consumer_prefix(self) -> str:
        return f"worker_{self.queue}"

    def _decode(self, message_id: str, fields: dict[str, str]) -> Job:
        return Job.from_fields(message_id, fields)

    def _record_prior_deliveries(self, message: Job, count: int) -> None:
        message.delivery_count = count


class JobEnqueuer:
    """Producer side: routes jobs to their queue's stream, now or later."""

    def __init__(self, client: redis.Redis, config: JobsConfig | None = None):
        self._redis = client
        self._config = config or JobsConfig()

    @property
    def client(self) -> redis.Redis:
        return self._redis

    async def enqueue(
        self,
        job_name: str,
        record_id: int | None = None,
        *,
        delay: float = 0.0,
        **params: Any,
    ) -> str:
        """Enqueue a job by name. Returns the job id."""
        job = Job(name=job_name, record_id=record_id, params=params)
        return await self.enqueue_job(job, delay=delay)

    async def enqueue_job(self, job: Job, delay: float = 0.0) -> str:
        """Enqueue a prepared job, optionally after ``delay`` seconds."""
        stream = stream_name(self._config, job.queue)
        fields = job.to_fields()

        if delay > 0:
            member = json.dumps({"stream": stream, "fields": fields})
            await self._redis.zadd(self._config.scheduled_key, {member: time.time() + delay})
            logger.debug(
                "Scheduled %s(%s) attempt %d in %.1fs",
                job.name, job.record_id, job.attempt, delay,
            )
            return job.job_id

        await self._redis.xadd(
            name=stream,
            fields=fields,
            maxlen=self._config.max_stream_length,
            approximate=True,
        )
        logger.debug("Enqueued %s(%s) on %s", job.name, job.record_id, stream)
        return job.job_id

    async def promote_due(self) -> int:
        """Move delayed jobs whose time has come into their streams.

        ZREM decides ownership, so concurrent workers never promote the same
        job twice.
        """
        due = await self._redis.zrangebyscore(
            self._config.scheduled_key,
            min=0,
            max=time.time(),
            start=0,
            num=self._config.promote_batch_size,
        )

        promoted = 0
        for member in due:
            if not await self._redis.zrem(self._config.scheduled_key, member):
                continue
            payload = json.loads(member)
            await self._redis.xadd(
                name=payload["stream"],
                fields=payload["fields"],
                maxlen=self._config.max_stream_length,
                approximate=True,
            )
            promoted += 1

        if promoted:
            logger.debug("Promoted %d scheduled jobs", promoted)
        return promoted

    async def scheduled_count(self) -> int:
        return await self._redis.zcard(self._config.scheduled_key)
