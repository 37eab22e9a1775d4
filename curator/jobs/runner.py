"""
Generic job execution wrapper.

Every job goes through ``JobRunner.run``, which:
1. Builds the JobContext and binds job fields to the log context
2. Dispatches to the handler registered for the job name
3. On failure, applies the policy table: schedule a delayed retry,
   discard, or report the job dead so the worker dead-letters it
4. Clears tenant and log context in a finally block
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

import structlog

from curator.jobs.context import JobContext
from curator.jobs.policy import Discard, policy_for
from curator.jobs.schemas import Job
from curator.observability.logging import bind_context, clear_context
from curator.observability.metrics import get_metrics

logger = structlog.get_logger(__name__)

JobHandler = Callable[[JobContext, Any, Job], Awaitable[Any]]


class JobOutcome(str, Enum):
    SUCCESS = "success"
    RETRIED = "retried"
    DISCARDED = "discarded"
    DEAD = "dead"


@dataclass
class JobResult:
    outcome: JobOutcome
    error: str | None = None


class JobRunner:
    """Runs jobs against a services container with policy-driven retries.

    Args:
        services: Container handed to every handler
        handlers: Job name to handler map (defaults to the registered handlers)
        enqueuer: Where retries are scheduled (defaults to services.enqueuer)
    """

    def __init__(
        self,
        services: Any,
        handlers: dict[str, JobHandler] | None = None,
        enqueuer: Any = None,
    ) -> None:
        if handlers is None:
            from curator.jobs.handlers import HANDLERS

            handlers = HANDLERS
        self._services = services
        self._handlers = handlers
        self._enqueuer = enqueuer or services.enqueuer
        self._metrics = get_metrics()

    async def run(self, job: Job) -> JobResult:
        ctx = JobContext(
            job_id=job.job_id,
            job_name=job.name,
            queue=job.queue,
            attempt=job.attempt,
        )
        bind_context(
            job_id=job.job_id,
            job=job.name,
            queue=job.queue,
            attempt=job.attempt,
            record_id=job.record_id,
        )
        started = time.monotonic()
        result = JobResult(JobOutcome.SUCCESS)

        try:
            handler = self._handlers.get(job.name)
            if handler is None:
                logger.error("No handler registered for job")
                result = JobResult(JobOutcome.DISCARDED, f"unknown job {job.name}")
            else:
                await handler(ctx, self._services, job)
        except Exception as exc:
            result = await self._handle_failure(job, exc)
        finally:
            ctx.clear()
            clear_context()
            self._metrics.record_job(
                job.name, result.outcome.value, latency=time.monotonic() - started
            )

        return result

    async def _handle_failure(self, job: Job, exc: Exception) -> JobResult:
        error = f"{type(exc).__name__}: {exc}"
        policy = policy_for(exc)

        if isinstance(policy, Discard):
            if policy.silent:
                logger.debug("Job discarded", error=error)
            else:
                logger.warning("Job discarded, not retrying", error=error)
            return JobResult(JobOutcome.DISCARDED, error)

        if job.attempt + 1 < policy.attempts:
            delay = policy.delay(job.attempt)
            await self._enqueuer.enqueue_job(job.next_attempt(), delay=delay)
            logger.warning(
                "Job failed, retry scheduled",
                error=error,
                retry_in=round(delay, 1),
                attempts=f"{job.attempt + 1}/{policy.attempts}",
            )
            return JobResult(JobOutcome.RETRIED, error)

        logger.error(
            "Job failed, retries exhausted",
            error=error,
            attempts=policy.attempts,
            exc_info=exc,
        )
        return JobResult(JobOutcome.DEAD, error)
