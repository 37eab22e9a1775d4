"""Job messages and the job-name to queue table."""

import json
import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Any

# Each stage is one job type; the queue decides which workers pick it up.
JOB_QUEUES: dict[str, str] = {
    "run_source": "ingestion",
    "upsert_entry": "ingestion",
    "upsert_listing": "ingestion",
    "scrape_metadata": "enrichment",
    "enrich_link": "enrichment",
    "editorialise": "editorialisation",
    "capture_screenshot": "screenshots",
    "sweep_stale": "low",
    "process_due_sources": "low",
    "process_backlog": "low",
}

DEFAULT_QUEUE = "default"


def queue_for(job_name: str) -> str:
    return JOB_QUEUES.get(job_name, DEFAULT_QUEUE)


@dataclass
class Job:
    """
    One unit of work.

    Attributes:
        name: Job type, a key of JOB_QUEUES
        record_id: The single record the job acts on (None for sweeps)
        params: Small scalar parameters
        attempt: Runner-level retries already spent (0 on first run)
        job_id: Stable across retries of the same logical job
        message_id: Redis stream message ID for acknowledgment
        delivery_count: Prior stream deliveries of this message
    """

    name: str
    record_id: int | None = None
    params: dict[str, Any] = field(default_factory=dict)
    attempt: int = 0
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    message_id: str = ""
    delivery_count: int = 0

    @property
    def queue(self) -> str:
        return queue_for(self.name)

    def next_attempt(self) -> "Job":
        """Copy of this job for its next retry."""
        return replace(self, attempt=self.attempt + 1, message_id="", delivery_count=0)

    def to_fields(self) -> dict[str, str]:
        """Flatten to Redis stream fields."""
        return {
            "job": self.name,
            "record_id": "" if self.record_id is None else str(self.record_id),
            "params": json.dumps(self.params),
            "attempt": str(self.attempt),
            "job_id": self.job_id,
            "enqueued_at": str(time.time()),
        }

    @classmethod
    def from_fields(cls, message_id: str, fields: dict[str, str]) -> "Job":
        record_id = fields.get("record_id") or None
        return cls(
            name=fields["job"],
            record_id=int(record_id) if record_id is not None else None,
            params=json.loads(fields.get("params") or "{}"),
            attempt=int(fields.get("attempt", "0")),
            job_id=fields.get("job_id") or uuid.uuid4().hex,
            message_id=message_id,
        )
