"""In-process metrics."""

from herald.metrics.collector import MetricsCollector

__all__ = ["MetricsCollector"]
