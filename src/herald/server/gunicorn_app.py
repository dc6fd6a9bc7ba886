"""Programmatic gunicorn runner for Herald.

Starts gunicorn with settings derived from the Herald config rather
than requiring a separate gunicorn config file.

One worker process with ``gthread`` request threads: the worker pool,
retry timer and scheduler are in-process threads, so they must live in
exactly one process and must be started *after* gunicorn forks.

Usage::

    from herald.server.gunicorn_app import run_gunicorn

    run_gunicorn(flask_app, container, settings.server)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from gunicorn.app.base import BaseApplication

if TYPE_CHECKING:
    from flask import Flask

    from herald.app.context import Container
    from herald.config.settings import ServerSettings

log = logging.getLogger(__name__)


class HeraldApplication(BaseApplication):
    def __init__(self, flask_app: Flask, container: Container, server: ServerSettings) -> None:
        self.application = flask_app
        self._container = container
        self._server = server
        super().__init__()

    def load_config(self) -> None:
        s = self._server
        self.cfg.set("bind", f"{s.bind}:{s.port}")
        self.cfg.set("workers", 1)
        self.cfg.set("worker_class", "gthread")
        self.cfg.set("threads", s.threads)
        self.cfg.set("timeout", s.timeout)
        self.cfg.set("graceful_timeout", s.graceful_timeout)
        # Silence gunicorn's own access log; requests are logged by herald.access
        self.cfg.set("accesslog", None)
        self.cfg.set("post_worker_init", self._post_worker_init)
        self.cfg.set("worker_exit", self._worker_exit)

    def load(self) -> Flask:
        return self.application

    def _post_worker_init(self, worker) -> None:
        log.info("gunicorn worker %s ready; starting delivery threads", worker.pid)
        self._container.start_background()

    def _worker_exit(self, server, worker) -> None:
        coordinator = self._container.shutdown_coordinator
        if coordinator is not None:
            coordinator.initiate()
        else:
            self._container.stop_background()


def run_gunicorn(app: Flask, container: Container, settings: ServerSettings) -> None:
    """Start a single-process gunicorn server from :class:`ServerSettings`."""
    log.info(
        "Starting gunicorn: %s:%s (1 worker, %d threads)",
        settings.bind,
        settings.port,
        settings.threads,
    )
    HeraldApplication(app, container, settings).run()
