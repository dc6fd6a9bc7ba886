"""Per-request hooks for the Herald API.

Every request gets a request ID (the caller's ``X-Request-ID`` when it
is well formed, a fresh hex UUID otherwise).  Routes addressing a single
notification also bind ``g.notification_id`` so log lines emitted while
handling them carry it.  On the way out the hooks stamp response
headers, bump ``herald_http_requests_total`` and write one access-log
line per request.
"""

from __future__ import annotations

import logging
import re
import time
from uuid import uuid4

from flask import Flask, g, request

access_log = logging.getLogger("herald.access")

_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def _incoming_request_id() -> str:
    supplied = request.headers.get("X-Request-ID", "")
    if _REQUEST_ID_RE.match(supplied):
        return supplied
    return uuid4().hex


def _access_level(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


def register_request_hooks(app: Flask) -> None:
    """Install the request-ID, notification binding and access-log hooks on *app*."""

    @app.before_request
    def _bind_request() -> None:
        g.request_id = _incoming_request_id()
        g.started = time.monotonic()
        view_args = request.view_args or {}
        if "notification_id" in view_args:
            g.notification_id = view_args["notification_id"]

    @app.after_request
    def _finish_request(response):
        status = response.status_code
        response.headers["X-Request-ID"] = g.get("request_id", "")
        response.headers["X-Content-Type-Options"] = "nosniff"

        container = app.extensions.get("container")
        if container is not None:
            container.metrics.increment(
                "herald_http_requests_total",
                labels={"method": request.method, "status": str(status)},
            )

        started = g.get("started")
        elapsed_ms = (time.monotonic() - started) * 1000 if started is not None else 0.0
        access_log.log(
            _access_level(status),
            "%s %s %s %.1fms",
            request.method,
            request.path,
            status,
            elapsed_ms,
            extra={
                "status": status,
                "endpoint": request.endpoint,
                "duration_ms": round(elapsed_ms, 1),
                "notification_id": g.get("notification_id"),
            },
        )
        return response
