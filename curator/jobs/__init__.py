"""
Job runtime: named Redis Streams queues, a policy-driven runner and the worker.

Handlers and the worker are not imported here; they depend on the packages
that themselves import ``curator.jobs.context``.
"""

from curator.jobs.context import JobContext
from curator.jobs.policy import Discard, Retry, policy_for
from curator.jobs.schemas import JOB_QUEUES, Job, queue_for

__all__ = ["JOB_QUEUES", "Discard", "Job", "JobContext", "Retry", "policy_for", "queue_for"]
