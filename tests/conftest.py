"""Root conftest for the Herald test suite."""

from __future__ import annotations

import sys
from datetime import UTC, datetime
from pathlib import Path
from uuid import uuid4

import pytest
import yaml

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

from herald.core.types import NotificationStatus  # noqa: E402
from herald.models.notification import Notification  # noqa: E402
from herald.repositories.memory import (  # noqa: E402
    InMemoryNotificationRepository,
    InMemoryTemplateRepository,
)
from herald.transport.base import SendResult, Transport  # noqa: E402

# ---------------------------------------------------------------------------
# Minimal config data shared by multiple test modules
# ---------------------------------------------------------------------------


@pytest.fixture()
def minimal_config_data() -> dict:
    """Return a dict containing a minimal, valid config."""
    return {
        "storage": {"backend": "memory"},
        "transport": {"enabled": False, "simulated_latency_seconds": 0},
    }


@pytest.fixture()
def tmp_config_file(tmp_path: Path, minimal_config_data: dict) -> Path:
    """Write *minimal_config_data* to a temp YAML file and return its path."""
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        yaml.safe_dump(minimal_config_data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return cfg


# ---------------------------------------------------------------------------
# ConfigKit singleton cleanup, autouse so every test gets a fresh slate
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def fresh_config():
    """Reset the HeraldConfig singleton before and after every test."""
    from herald.config.herald_config import HeraldConfig

    HeraldConfig.reset()
    yield
    HeraldConfig.reset()


# ---------------------------------------------------------------------------
# Delivery pipeline doubles
# ---------------------------------------------------------------------------


class ScriptedTransport(Transport):
    """Transport returning queued results (default: success) and recording calls."""

    name = "scripted"

    def __init__(self, results: list[SendResult] | None = None, default: SendResult | None = None):
        self.results = list(results or [])
        self.default = default or SendResult.ok()
        self.calls: list[dict] = []

    def send(self, from_address, from_name, to_address, subject, html_body) -> SendResult:
        self.calls.append(
            {
                "from_address": from_address,
                "from_name": from_name,
                "to_address": to_address,
                "subject": subject,
                "html_body": html_body,
            }
        )
        if self.results:
            return self.results.pop(0)
        return self.default


class InlinePool:
    """Worker pool stand-in that runs every job synchronously on submit."""

    def __init__(self, accept: bool = True) -> None:
        self.accept = accept
        self.submitted: list[str] = []

    def submit(self, name, fn) -> bool:
        self.submitted.append(name)
        if not self.accept:
            return False
        fn()
        return True


class ManualTimer:
    """RetryTimer stand-in: callbacks fire only when ``fire_all`` is called."""

    def __init__(self) -> None:
        self.scheduled: list[tuple[float, str, object]] = []

    @property
    def pending_count(self) -> int:
        return len(self.scheduled)

    def schedule(self, delay, name, fn) -> None:
        self.scheduled.append((delay, name, fn))

    def fire_all(self) -> int:
        due, self.scheduled = self.scheduled, []
        for _, _, fn in due:
            fn()
        return len(due)


@pytest.fixture()
def notification_repo() -> InMemoryNotificationRepository:
    return InMemoryNotificationRepository()


@pytest.fixture()
def template_repo() -> InMemoryTemplateRepository:
    return InMemoryTemplateRepository()


def make_notification(**overrides) -> Notification:
    """Build a Notification with sensible defaults for tests."""
    now = datetime.now(UTC)
    fields = {
        "id": uuid4(),
        "recipient": "user@example.com",
        "subject": "Test",
        "content": "Hi",
        "status": NotificationStatus.PENDING,
        "created_at": now,
        "updated_at": now,
    }
    fields.update(overrides)
    return Notification(**fields)


@pytest.fixture(name="make_notification")
def make_notification_fixture():
    """Factory fixture wrapping :func:`make_notification`."""
    return make_notification


@pytest.fixture()
def scripted_transport() -> ScriptedTransport:
    """Transport that succeeds unless ``results``/``default`` are changed."""
    return ScriptedTransport()


@pytest.fixture()
def inline_pool() -> InlinePool:
    return InlinePool()


@pytest.fixture()
def manual_timer() -> ManualTimer:
    return ManualTimer()


# ---------------------------------------------------------------------------
# Flask app wired to the in-memory store
# ---------------------------------------------------------------------------


@pytest.fixture()
def container(scripted_transport):
    from herald.app.context import Container
    from herald.config.settings import build_settings

    settings = build_settings(
        {
            "storage": {"backend": "memory"},
            "transport": {"enabled": False, "simulated_latency_seconds": 0},
            "server": {"max_request_body_bytes": 4096},
        }
    )
    return Container(settings, transport=scripted_transport)


@pytest.fixture()
def app(container):
    from types import SimpleNamespace

    from herald.app import create_app

    flask_app = create_app(
        config=SimpleNamespace(settings=container.settings),
        container=container,
        start_background=False,
    )
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture()
def client(app):
    return app.test_client()
