"""
Prometheus metrics for monitoring the ingestion and enrichment pipeline.

Defines and exposes metrics for:
- Job execution outcomes and latency
- Import runs and ingested items per source kind
- Enrichment state transitions
- AI token usage
- Queue depth, reclaim and dead-letter counts

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from curator.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the curator pipeline.

    Usage:
        metrics = get_metrics()
        metrics.start_server()

        metrics.record_job("enrich_link", "success", latency=1.2)
        metrics.record_import_run("rss", "completed")
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        # Jobs
        self.jobs_processed = Counter(
            "curator_jobs_processed_total",
            "Total jobs executed",
            ["job", "outcome"],  # outcome: success, retried, discarded, dead
        )

        self.job_latency = Histogram(
            "curator_job_latency_seconds",
            "Time spent executing a job",
            ["job"],
            buckets=LATENCY_BUCKETS,
        )

        # Ingestion
        self.import_runs = Counter(
            "curator_import_runs_total",
            "Adapter invocations by final status",
            ["kind", "status"],  # status: completed, failed, skipped, rate_limited...
        )

        self.items_ingested = Counter(
            "curator_items_ingested_total",
            "Items processed by adapters",
            ["kind", "outcome"],  # outcome: created, updated, failed
        )

        # Enrichment
        self.enrichment_transitions = Counter(
            "curator_enrichment_transitions_total",
            "Entry enrichment status transitions",
            ["status"],
        )

        self.ai_tokens = Counter(
            "curator_ai_tokens_total",
            "Tokens consumed by editorialisation calls",
            ["model", "direction"],  # direction: input, output
        )

        # Queue metrics
        self.queue_depth = Gauge(
            "curator_queue_depth",
            "Number of messages in a job stream",
            ["stream"],
        )

        self.pending_reclaimed = Counter(
            "curator_queue_pending_reclaimed_total",
            "Total messages reclaimed from pending state",
            ["queue"],
        )

        self.dlq_max_retries = Counter(
            "curator_queue_dlq_max_retries_total",
            "Total messages moved to DLQ due to max retries exceeded",
            ["queue"],
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=REGISTRY)
        logger.info(f"Prometheus metrics server started on port {port}")

    # Convenience methods

    def record_job(
        self,
        job: str,
        outcome: str,
        latency: float | None = None,
    ) -> None:
        """
        Record a job execution.

        Args:
            job: Job name
            outcome: success, retried, discarded or dead
            latency: Optional execution time in seconds
        """
        self.jobs_processed.labels(job=job, outcome=outcome).inc()
        if latency is not None:
            self.job_latency.labels(job=job).observe(latency)

    def record_import_run(self, kind: str, status: str) -> None:
        """Record the final status of an adapter invocation."""
        self.import_runs.labels(kind=kind, status=status).inc()

    def record_items(
        self,
        kind: str,
        created: int = 0,
        updated: int = 0,
        failed: int = 0,
    ) -> None:
        """Record per-item adapter outcomes."""
        if created:
            self.items_ingested.labels(kind=kind, outcome="created").inc(created)
        if updated:
            self.items_ingested.labels(kind=kind, outcome="updated").inc(updated)
        if failed:
            self.items_ingested.labels(kind=kind, outcome="failed").inc(failed)

    def record_enrichment(self, status: str) -> None:
        """Record an entry entering an enrichment status."""
        self.enrichment_transitions.labels(status=status).inc()

    def record_ai_tokens(self, model: str, tokens_in: int, tokens_out: int) -> None:
        """Record tokens consumed by one completion."""
        self.ai_tokens.labels(model=model, direction="input").inc(tokens_in)
        self.ai_tokens.labels(model=model, direction="output").inc(tokens_out)

    def set_queue_depth(self, stream: str, depth: int) -> None:
        """
        Set queue depth metric.

        Args:
            stream: Stream name
            depth: Number of messages
        """
        self.queue_depth.labels(stream=stream).set(depth)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
