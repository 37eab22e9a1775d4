"""
Redis Streams queue abstractions with automatic pending message reclaim.

Classes:
    BaseRedisQueue: Abstract base class for Redis Streams queues
    StreamConfig: Names and limits for a Redis Stream
    QueueConfig: Reclaim behaviour
    ExponentialBackoff: Delay calculator for reconnect and retry loops
"""

from curator.queues.backoff import ExponentialBackoff
from curator.queues.base import BaseRedisQueue, StreamConfig
from curator.queues.config import QueueConfig

__all__ = ["BaseRedisQueue", "ExponentialBackoff", "QueueConfig", "StreamConfig"]
