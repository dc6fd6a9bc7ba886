"""In-process metrics collector.

Counts delivery outcomes, sweep runs and pool rejections, and holds
the gauges refreshed by the stats sweep.  Exports in Prometheus text
format for ``GET /metrics``.
"""

from __future__ import annotations

import threading
import time

_HELP = {
    "herald_delivery_attempts_total": "Delivery attempts handed to a transport",
    "herald_delivery_success_total": "Attempts that ended SENT",
    "herald_delivery_failures_total": "Attempts that ended FAILED",
    "herald_retries_scheduled_total": "Automatic retries armed with a backoff delay",
    "herald_manual_retries_total": "Retries requested through the API",
    "herald_notifications_submitted_total": "Notifications accepted as PENDING",
    "herald_dispatch_rejected_total": "Jobs refused because the worker queue was full",
    "herald_dispatch_errors_total": "Worker jobs that raised",
    "herald_dispatch_queue_depth": "Jobs waiting in the worker queue",
    "herald_sweep_runs_total": "Scheduler sweep executions",
    "herald_sweep_errors_total": "Scheduler sweeps that raised",
    "herald_http_requests_total": "HTTP requests served",
    "herald_notifications": "Notifications per status at the last stats sweep",
    "herald_sent_today": "Notifications sent since UTC midnight",
    "herald_failed_today": "Notifications failed since UTC midnight",
}


def _series_key(name: str, labels: dict | None) -> str:
    if not labels:
        return name
    rendered = ",".join(f'{k}="{v}"' for k, v in sorted(labels.items()))
    return f"{name}{{{rendered}}}"


class MetricsCollector:
    """Thread-safe in-process counters and gauges."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._series: dict[str, dict[str, float]] = {"counter": {}, "gauge": {}}
        self._started = time.time()

    def increment(self, name: str, amount: int = 1, labels: dict | None = None) -> None:
        key = _series_key(name, labels)
        with self._lock:
            counters = self._series["counter"]
            counters[key] = counters.get(key, 0) + amount

    def get(self, name: str, labels: dict | None = None) -> int:
        """Current value of a counter, 0 if it was never incremented."""
        with self._lock:
            return int(self._series["counter"].get(_series_key(name, labels), 0))

    def set_gauge(self, name: str, value: float, labels: dict | None = None) -> None:
        with self._lock:
            self._series["gauge"][_series_key(name, labels)] = value

    def get_gauge(self, name: str, labels: dict | None = None) -> float | None:
        with self._lock:
            return self._series["gauge"].get(_series_key(name, labels))

    def export(self) -> str:
        """Render every series, grouped by metric name, with HELP and TYPE lines."""
        out = [
            "# HELP herald_uptime_seconds Seconds since the collector was created",
            "# TYPE herald_uptime_seconds gauge",
            f"herald_uptime_seconds {time.time() - self._started:.1f}",
        ]
        with self._lock:
            snapshot = {kind: dict(series) for kind, series in self._series.items()}

        for kind, series in snapshot.items():
            by_name: dict[str, list[str]] = {}
            for key in sorted(series):
                by_name.setdefault(key.split("{", 1)[0], []).append(key)
            for name in sorted(by_name):
                out.append("")
                if name in _HELP:
                    out.append(f"# HELP {name} {_HELP[name]}")
                out.append(f"# TYPE {name} {kind}")
                out.extend(f"{key} {series[key]}" for key in by_name[name])
        return "\n".join(out) + "\n"
