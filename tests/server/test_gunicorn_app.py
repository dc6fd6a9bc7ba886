"""Tests for herald.server.gunicorn_app."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from flask import Flask

from herald.config.settings import build_settings
from herald.server.gunicorn_app import HeraldApplication, run_gunicorn


def _server_settings():
    return build_settings({"server": {"bind": "0.0.0.0", "port": 9090, "threads": 4}}).server


class TestHeraldApplication:
    def test_config_derived_from_settings(self):
        app = HeraldApplication(Flask("t"), MagicMock(), _server_settings())
        assert app.cfg.bind == ["0.0.0.0:9090"]
        assert app.cfg.workers == 1
        assert app.cfg.threads == 4
        assert app.cfg.graceful_timeout == 30

    def test_load_returns_flask_app(self):
        flask_app = Flask("t")
        assert HeraldApplication(flask_app, MagicMock(), _server_settings()).load() is flask_app

    def test_post_worker_init_starts_background(self):
        container = MagicMock()
        app = HeraldApplication(Flask("t"), container, _server_settings())
        app.cfg.post_worker_init(SimpleNamespace(pid=123))
        container.start_background.assert_called_once_with()

    def test_worker_exit_initiates_shutdown(self):
        container = MagicMock()
        app = HeraldApplication(Flask("t"), container, _server_settings())
        app.cfg.worker_exit(MagicMock(), MagicMock())
        container.shutdown_coordinator.initiate.assert_called_once_with()

    def test_worker_exit_without_coordinator(self):
        container = MagicMock()
        container.shutdown_coordinator = None
        app = HeraldApplication(Flask("t"), container, _server_settings())
        app.cfg.worker_exit(MagicMock(), MagicMock())
        container.stop_background.assert_called_once_with()


class TestRunGunicorn:
    def test_runs_application(self):
        with patch.object(HeraldApplication, "run") as run:
            run_gunicorn(Flask("t"), MagicMock(), _server_settings())
        run.assert_called_once_with()
