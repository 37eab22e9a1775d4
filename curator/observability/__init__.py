"""Observability layer - logging and metrics."""

from curator.observability.logging import setup_logging
from curator.observability.metrics import MetricsCollector, get_metrics

__all__ = ["setup_logging", "MetricsCollector", "get_metrics"]
