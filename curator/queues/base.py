"""
Consumer-side base for Redis Streams queues.

A queue owns one stream, its consumer group and a dead letter stream
beside it. Delivery is at least once: ``consume()`` first takes over
messages another consumer left unacknowledged for longer than the idle
timeout (XAUTOCLAIM), then reads new ones (XREADGROUP). A message that
cannot be decoded, or that keeps being redelivered without ever being
acknowledged, is copied to the dead letter stream and acknowledged so it
stops circulating.
"""

import asyncio
import logging
import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from types import TracebackType
from typing import Generic, TypeVar

import redis.asyncio as redis

from curator.observability.metrics import get_metrics
from curator.queues.backoff import ExponentialBackoff
from curator.queues.config import QueueConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

DLQ_MAX_LENGTH = 10_000


@dataclass
class StreamConfig:
    """
    Attributes:
        stream_name: Stream the queue consumes
        consumer_group: Group shared by every worker on the stream
        dlq_stream_name: Where undeliverable messages are copied
        max_stream_length: Approximate MAXLEN for producers
    """

    stream_name: str
    consumer_group: str
    dlq_stream_name: str
    max_stream_length: int = 50_000


class BaseRedisQueue(ABC, Generic[T]):
    """
    Stream consumer yielding decoded messages of type T.

    Subclasses provide the stream names, a consumer name prefix, a decoder
    for message fields and a hook that stores how often a message was
    delivered before.

    Usage:
        async with JobQueue("enrichment", redis_url) as queue:
            async for job in queue.consume():
                await run(job)
                await queue.ack(job.message_id)
    """

    def __init__(
        self,
        redis_url: str,
        queue_config: QueueConfig | None = None,
        client: redis.Redis | None = None,
    ):
        """
        Args:
            redis_url: Used only when no client is passed
            queue_config: Reclaim and backoff tuning
            client: A connection shared with other queues; left open on close()
        """
        self._redis_url = redis_url
        self._queue_config = queue_config or QueueConfig()

        self._redis: redis.Redis | None = client
        self._owns_client = client is None
        self._consumer_name: str | None = None
        self._stream_config: StreamConfig | None = None

    @abstractmethod
    def _get_stream_config(self) -> StreamConfig:
        ...

    @abstractmethod
    def _get_consumer_prefix(self) -> str:
        ...

    @abstractmethod
    def _decode(self, message_id: str, fields: dict[str, str]) -> T:
        """Build a message from stream fields; raise on malformed input."""

    @abstractmethod
    def _record_prior_deliveries(self, message: T, count: int) -> None:
        ...

    async def connect(self) -> None:
        """Open the connection if needed and make sure the group exists."""
        if self._redis is None:
            self._redis = redis.from_url(self._redis_url, encoding="utf-8", decode_responses=True)

        config = self._get_stream_config()
        self._stream_config = config
        self._consumer_name = f"{self._get_consumer_prefix()}_{uuid.uuid4().hex[:8]}"

        try:
            await self._redis.xgroup_create(
                name=config.stream_name,
                groupname=config.consumer_group,
                id="0",
                mkstream=True,
            )
            logger.info("Created group %s on %s", config.consumer_group, config.stream_name)
        except redis.ResponseError as e:
            # BUSYGROUP: another worker created it first
            if "BUSYGROUP" not in str(e):
                raise

        logger.info("Consumer %s attached to %s", self._consumer_name, config.stream_name)

    async def close(self) -> None:
        if self._redis is not None and self._owns_client:
            await self._redis.close()
        self._redis = None

    async def __aenter__(self) -> "BaseRedisQueue[T]":
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def redis(self) -> redis.Redis:
        if self._redis is None:
            raise RuntimeError("Queue is not connected; call connect() first")
        return self._redis

    @property
    def stream_config(self) -> StreamConfig:
        if self._stream_config is None:
            raise RuntimeError("Queue is not connected; call connect() first")
        return self._stream_config

    async def consume(self, count: int = 10, block_ms: int = 5000) -> AsyncIterator[T]:
        """
        Yield messages until the consuming task is cancelled.

        Redis errors are logged and retried with exponential backoff; the
        backoff resets after the next successful read.
        """
        if self._consumer_name is None:
            raise RuntimeError("Queue is not connected; call connect() first")

        backoff = ExponentialBackoff(
            base_delay=self._queue_config.backoff_base_delay,
            max_delay=self._queue_config.backoff_max_delay,
        )
        config = self.stream_config

        while True:
            try:
                async for message in self._reclaim_pending(count):
                    yield message

                batches = await self.redis.xreadgroup(
                    groupname=config.consumer_group,
                    consumername=self._consumer_name,
                    streams={config.stream_name: ">"},
                    count=count,
                    block=block_ms,
                )
                backoff.reset()

                for _stream, entries in batches or []:
                    for message_id, fields in entries:
                        message = await self._decode_or_dead_letter(message_id, fields)
                        if message is not None:
                            self._record_prior_deliveries(message, 0)
                            yield message

            except asyncio.CancelledError:
                logger.info("Consumer %s stopping", self._consumer_name)
                break
            except redis.RedisError as e:
                delay = backoff.next_delay()
                logger.error("Reading %s failed (%s); retrying in %.1fs", config.stream_name, e, delay)
                await asyncio.sleep(delay)

    async def _reclaim_pending(self, count: int) -> AsyncIterator[T]:
        """Take over messages idle past the timeout and yield them again."""
        config = self.stream_config
        metrics = get_metrics()

        try:
            # reply: [next_start_id, [(id, fields), ...], [deleted_ids]]
            reply = await self.redis.xautoclaim(
                name=config.stream_name,
                groupname=config.consumer_group,
                consumername=self._consumer_name,
                min_idle_time=self._queue_config.idle_timeout_ms,
                start_id="0-0",
                count=count,
            )
        except redis.ResponseError as e:
            logger.warning("Skipping reclaim on %s: %s", config.stream_name, e)
            return

        claimed = reply[1] if reply else []
        if not claimed:
            return

        logger.info("Reclaimed %d idle messages on %s", len(claimed), config.stream_name)
        deliveries = await self._delivery_counts([message_id for message_id, _ in claimed])
        limit = self._queue_config.max_delivery_attempts

        for message_id, fields in claimed:
            delivered = deliveries.get(message_id, 1)
            if delivered > limit:
                logger.warning("Message %s delivered %d times (limit %d)", message_id, delivered, limit)
                await self._dead_letter(message_id, fields, "max_retries_exceeded")
                metrics.dlq_max_retries.labels(queue=config.stream_name).inc()
                continue

            message = await self._decode_or_dead_letter(message_id, fields)
            if message is None:
                continue

            self._record_prior_deliveries(message, delivered - 1)
            metrics.pending_reclaimed.labels(queue=config.stream_name).inc()
            yield message

    async def _delivery_counts(self, message_ids: list[str]) -> dict[str, int]:
        """Times each message has been delivered, from XPENDING."""
        try:
            pending = await self.redis.xpending_range(
                name=self.stream_config.stream_name,
                groupname=self.stream_config.consumer_group,
                min="-",
                max="+",
                count=len(message_ids) * 2,
            )
        except redis.RedisError as e:
            logger.error("XPENDING on %s failed: %s", self.stream_config.stream_name, e)
            return {}

        wanted = set(message_ids)
        return {p["message_id"]: p["times_delivered"] for p in pending if p["message_id"] in wanted}

    async def _decode_or_dead_letter(self, message_id: str, fields: dict[str, str]) -> T | None:
        try:
            return self._decode(message_id, fields)
        except (KeyError, TypeError, ValueError) as e:
            logger.error("Undecodable message %s: %r", message_id, e)
            await self._dead_letter(message_id, fields, f"decode_error: {e!r}")
            return None

    async def ack(self, message_id: str) -> None:
        await self.redis.xack(
            self.stream_config.stream_name,
            self.stream_config.consumer_group,
            message_id,
        )

    async def nack(self, message_id: str, error: str | None = None) -> None:
        """Dead-letter a message that failed for good.

        The stream copy may already have been trimmed by MAXLEN; the message
        is acknowledged either way.
        """
        found = await self.redis.xrange(self.stream_config.stream_name, min=message_id, max=message_id)
        if not found:
            await self.ack(message_id)
            return
        _, fields = found[0]
        await self._dead_letter(message_id, fields, error)

    async def _dead_letter(self, message_id: str, fields: dict[str, str], reason: str | None) -> None:
        """Copy the message to the DLQ stream, then acknowledge the original."""
        await self.redis.xadd(
            self.stream_config.dlq_stream_name,
            {**fields, "original_id": message_id, "error": reason or "unknown", "failed_at": str(time.time())},
            maxlen=DLQ_MAX_LENGTH,
        )
        await self.ack(message_id)
        logger.warning("Dead-lettered %s from %s: %s", message_id, self.stream_config.stream_name, reason)

    async def get_pending_count(self) -> int:
        """Delivered but unacknowledged messages in the group."""
        summary = await self.redis.xpending(self.stream_config.stream_name, self.stream_config.consumer_group)
        return summary["pending"] if summary else 0

    async def get_stream_length(self) -> int:
        return await self.redis.xlen(self.stream_config.stream_name)
