"""Tests for herald.config.settings -- typed settings builders."""

from __future__ import annotations

import dataclasses

import pytest

from herald.config.settings import build_settings


class TestDefaults:
    def test_defaults(self):
        s = build_settings({})
        assert s.server.port == 8080
        assert s.storage.backend == "database"
        assert s.delivery.max_retries == 3
        assert s.delivery.retry_base_seconds == 2.0
        assert s.delivery.retry_max_delay_seconds == 60.0
        assert s.delivery.pending_batch_size == 10
        assert s.scheduler.pending_interval_seconds == 30
        assert s.scheduler.retry_interval_seconds == 120
        assert s.scheduler.stats_interval_seconds == 300
        assert s.workers.max_workers == 5
        assert s.workers.queue_capacity == 100
        assert s.transport.enabled is False
        assert s.transport.simulated_success_rate == 0.9
        assert s.logging.format == "json"

    def test_none_sections_use_defaults(self):
        s = build_settings({"server": None, "transport": {"sendgrid": None, "smtp": None}})
        assert s.server.bind == "127.0.0.1"
        assert s.transport.smtp.port == 587

    def test_overrides(self):
        s = build_settings(
            {
                "workers": {"max_workers": 2, "queue_capacity": 3},
                "transport": {"smtp": {"host": "mail", "use_tls": False}},
            }
        )
        assert (s.workers.max_workers, s.workers.queue_capacity) == (2, 3)
        assert s.transport.smtp.host == "mail"
        assert s.transport.smtp.use_tls is False

    def test_frozen(self):
        s = build_settings({})
        with pytest.raises(dataclasses.FrozenInstanceError):
            s.delivery.max_retries = 9
