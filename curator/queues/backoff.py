"""
Backoff delay calculators.

ExponentialBackoff is stateful and used by loops that reconnect after
transient failures. ``retry_delay`` is stateless and used by the job runner
to schedule a retry from the attempt number carried on the job.
"""

import random


class ExponentialBackoff:
    """
    Exponential backoff with jitter.

    Computes delays as: min(base * multiplier^attempt, max_delay) + jitter.
    Call reset() after a successful operation to zero the attempt counter.

    Usage:
        backoff = ExponentialBackoff(base_delay=1.0, max_delay=60.0)
        while True:
            try:
                await do_work()
                backoff.reset()
            except ConnectionError:
                await asyncio.sleep(backoff.next_delay())
    """

    def __init__(
        self,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        multiplier: float = 2.0,
        jitter_range: float = 0.5,
    ):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.multiplier = multiplier
        self.jitter_range = jitter_range
        self._attempt = 0

    @property
    def attempt(self) -> int:
        """Current attempt count."""
        return self._attempt

    def next_delay(self) -> float:
        """Return the next delay and advance the attempt counter."""
        delay = retry_delay(
            "exponential",
            self._attempt,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            multiplier=self.multiplier,
            jitter_range=self.jitter_range,
        )
        self._attempt += 1
        return delay

    def reset(self) -> None:
        """Reset the attempt counter after a successful operation."""
        self._attempt = 0


def retry_delay(
    strategy: str,
    attempt: int,
    base_delay: float = 3.0,
    max_delay: float = 3600.0,
    multiplier: float = 2.0,
    jitter_range: float = 0.15,
) -> float:
    """
    Delay in seconds before retry number ``attempt`` (0-indexed).

    Strategies:
        fixed:       base_delay
        exponential: base_delay * multiplier^attempt
        polynomial:  (attempt + 1)^4 + base_delay, which grows slowly at first
                     and steeply later (4s, 19s, 84s, ... with base 3)
    """
    if strategy == "fixed":
        delay = base_delay
    elif strategy == "exponential":
        delay = base_delay * (multiplier ** attempt)
    elif strategy == "polynomial":
        delay = (attempt + 1) ** 4 + base_delay
    else:
        raise ValueError(f"Unknown backoff strategy: {strategy}")

    delay = min(delay, max_delay)
    jitter = delay * random.uniform(-jitter_range, jitter_range)
    return max(0.0, delay + jitter)
