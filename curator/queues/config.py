"""Reclaim and backoff settings for stream-backed queues."""

from dataclasses import dataclass


@dataclass
class QueueConfig:
    """
    Attributes:
        idle_timeout_ms: How long a delivered message may stay unacknowledged
            before another consumer reclaims it. Must exceed the slowest job
            (AI calls and page fetches can take tens of seconds).
        max_delivery_attempts: Deliveries after which a reclaimed message is
            dead-lettered. This guards against crash loops; ordinary job
            retries are scheduled by the job runner instead.
        backoff_base_delay: First delay after a Redis error in consume().
        backoff_max_delay: Cap for that delay.
    """

    idle_timeout_ms: int = 120_000
    max_delivery_attempts: int = 3
    backoff_base_delay: float = 1.0
    backoff_max_delay: float = 60.0
