"""Builds the Herald Flask application.

The app is a thin shell around a :class:`~herald.app.context.Container`:
the ``/api`` blueprint calls into its services, ``/health`` and
``/metrics`` report on its pool, retry timer and scheduler.  Whether
the container's delivery threads are started here or later (in the
gunicorn worker) is the caller's choice::

    app = create_app(config=get_config(), database=init_database(...))
    app = create_app(config=cfg, container=container, start_background=False)
"""

from __future__ import annotations

import atexit
import logging
from typing import TYPE_CHECKING

from flask import Flask, jsonify, make_response

from herald import __version__
from herald.app.context import Container
from herald.app.errors import register_error_handlers
from herald.app.middleware import register_request_hooks
from herald.app.shutdown import ShutdownCoordinator

if TYPE_CHECKING:
    from flask.typing import ResponseReturnValue
    from pypgkit import Database

    from herald.config.herald_config import HeraldConfig

log = logging.getLogger(__name__)


def create_app(
    config: HeraldConfig | None = None,
    database: Database | None = None,
    *,
    container: Container | None = None,
    start_background: bool = True,
) -> Flask:
    """Return a configured Flask app.

    *config* defaults to :func:`get_config`.  Without a *container*, one
    is built from *config* and *database*; with neither a database nor
    the memory backend the app serves only the infrastructure endpoints.
    *start_background* starts the delivery threads immediately and stops them at exit.
    """
    if config is None:
        from herald.config import get_config  # noqa: PLC0415

        config = get_config()

    settings = config.settings

    app = Flask("herald")
    app.config["HERALD_SETTINGS"] = settings
    app.config["MAX_CONTENT_LENGTH"] = settings.server.max_request_body_bytes

    shutdown_coordinator = (
        container.shutdown_coordinator
        if container is not None and container.shutdown_coordinator is not None
        else ShutdownCoordinator(graceful_timeout=settings.server.graceful_timeout)
    )
    app.extensions["shutdown_coordinator"] = shutdown_coordinator

    register_error_handlers(app)
    register_request_hooks(app)
    _register_health(app)

    if container is None and (database is not None or settings.storage.backend == "memory"):
        container = Container(
            settings,
            db=database,
            shutdown_coordinator=shutdown_coordinator,
        )

    if container is not None:
        app.extensions["container"] = container

        from herald.api import register_blueprints  # noqa: PLC0415

        register_blueprints(app)

        if start_background:
            container.start_background()
            atexit.register(shutdown_coordinator.initiate)
    else:
        log.warning("No storage available; only /livez, /health and /metrics are served")

    log.info("Flask application created (storage=%s)", settings.storage.backend)
    return app


# ---------------------------------------------------------------------------
# Infrastructure endpoints
# ---------------------------------------------------------------------------


def _health_report(app: Flask) -> dict:
    """Collect the ``/health`` document; ``status`` is ``ok`` or ``degraded``."""
    report: dict = {"status": "ok", "version": __version__}
    checks: dict = {}
    container = app.extensions.get("container")

    if container is None:
        checks["container"] = "missing"
    elif container.db is None:
        checks["storage"] = container.settings.storage.backend
    else:
        try:
            container.db.fetch_value("SELECT 1")
        except Exception:  # noqa: BLE001
            checks["database"] = "disconnected"
        else:
            checks["database"] = "connected"

    if container is not None:
        report["queue"] = {"depth": container.pool.queue_depth, "capacity": container.pool.capacity}
        report["pending_retries"] = container.retry_timer.pending_count
        if container.settings.scheduler.enabled and container.background_started:
            report["scheduler"] = "alive" if container.scheduler.is_running else "dead"

    coordinator = app.extensions.get("shutdown_coordinator")
    if coordinator is not None:
        report["shutting_down"] = coordinator.is_shutting_down

    unhealthy = (
        checks.get("container") == "missing"
        or checks.get("database") == "disconnected"
        or report.get("scheduler") == "dead"
    )
    if unhealthy:
        report["status"] = "degraded"
    report["checks"] = checks
    return report


def _register_health(app: Flask) -> None:
    """Register ``/livez``, ``/health`` and ``/metrics``."""

    @app.route("/livez")
    def livez() -> ResponseReturnValue:
        return jsonify({"alive": True, "version": __version__})

    @app.route("/health")
    def health() -> ResponseReturnValue:
        report = _health_report(app)
        return jsonify(report), 200 if report["status"] == "ok" else 503

    @app.route("/metrics")
    def metrics() -> ResponseReturnValue:
        container = app.extensions.get("container")
        body = container.metrics.export() if container is not None else ""
        response = make_response(body)
        response.content_type = "text/plain; version=0.0.4; charset=utf-8"
        return response
