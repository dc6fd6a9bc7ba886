"""Tests for HeraldConfig loading and cross-field validation."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
import yaml

from herald.config.herald_config import (
    ConfigValidationError,
    HeraldConfig,
    collect_config_problems,
    get_config,
)


def _write_config(tmp_path: Path, overrides: dict | None = None) -> Path:
    """Write a complete valid config, merging *overrides*, return path."""
    cfg = {
        "database": {"database": "herald", "user": "herald"},
        "transport": {"enabled": False},
    }
    if overrides:
        _deep_merge(cfg, overrides)
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(cfg, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return path


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def _make_config(tmp_path: Path, overrides: dict | None = None) -> HeraldConfig:
    return HeraldConfig(config_file=_write_config(tmp_path, overrides), schema_file="bundled")


# ---------------------------------------------------------------------------
# TestLoading
# ---------------------------------------------------------------------------


class TestLoading:
    def test_minimal_config_loads(self, tmp_config_file):
        cfg = HeraldConfig(config_file=tmp_config_file, schema_file="bundled")
        assert cfg.settings.storage.backend == "memory"
        assert cfg.settings.delivery.max_retries == 3
        assert get_config() is cfg

    def test_get_config_before_init(self):
        with pytest.raises(RuntimeError, match="Configuration not initialised"):
            get_config()

    def test_dynamic_access(self, tmp_path):
        cfg = _make_config(tmp_path, {"transport": {"from_name": "Ops"}})
        assert cfg.get("transport.from_name") == "Ops"
        assert cfg.settings.transport.from_name == "Ops"

    def test_env_var_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HERALD_TEST_DB_PASSWORD", "s3cret")
        cfg = _make_config(
            tmp_path,
            {
                "database": {
                    "password": "${HERALD_TEST_DB_PASSWORD}",
                    "host": "${HERALD_TEST_UNSET_HOST:-db.internal}",
                }
            },
        )
        assert cfg.settings.database.password == "s3cret"
        assert cfg.settings.database.host == "db.internal"

    def test_env_var_missing_without_default(self, tmp_path, monkeypatch):
        monkeypatch.delenv("HERALD_TEST_MISSING", raising=False)
        with pytest.raises((ConfigValidationError, ValueError), match="HERALD_TEST_MISSING"):
            _make_config(tmp_path, {"database": {"password": "${HERALD_TEST_MISSING}"}})

    def test_schema_rejects_unknown_key(self, tmp_path):
        with pytest.raises((ConfigValidationError, ValueError)):
            _make_config(tmp_path, {"delivery": {"max_retrys": 3}})

    def test_schema_rejects_bad_enum(self, tmp_path):
        with pytest.raises((ConfigValidationError, ValueError)):
            _make_config(tmp_path, {"storage": {"backend": "redis"}})


# ---------------------------------------------------------------------------
# TestCrossFieldChecks
# ---------------------------------------------------------------------------


class TestCrossFieldChecks:
    def test_retry_base_above_cap_rejected(self, tmp_path):
        with pytest.raises(ConfigValidationError, match="retry_base_seconds"):
            _make_config(
                tmp_path,
                {"delivery": {"retry_base_seconds": 90, "retry_max_delay_seconds": 60}},
            )

    def test_pool_bounds_rejected(self, tmp_path):
        with pytest.raises(ConfigValidationError, match="min_connections"):
            _make_config(tmp_path, {"database": {"min_connections": 20, "max_connections": 5}})

    def test_enabled_sendgrid_requires_key_and_sender(self, tmp_path):
        with pytest.raises(ConfigValidationError) as exc_info:
            _make_config(tmp_path, {"transport": {"enabled": True, "backend": "sendgrid"}})
        errors = exc_info.value.errors
        assert any("from_address" in e for e in errors)
        assert any("sendgrid.api_key" in e for e in errors)

    def test_enabled_smtp_requires_host(self, tmp_path):
        with pytest.raises(ConfigValidationError, match="smtp.host"):
            _make_config(
                tmp_path,
                {
                    "transport": {
                        "enabled": True,
                        "backend": "smtp",
                        "from_address": "noreply@example.com",
                    }
                },
            )

    def test_enabled_sendgrid_accepted(self, tmp_path):
        cfg = _make_config(
            tmp_path,
            {
                "transport": {
                    "enabled": True,
                    "from_address": "noreply@example.com",
                    "sendgrid": {"api_key": "SG.key"},
                }
            },
        )
        assert cfg.settings.transport.sendgrid.api_key == "SG.key"

    def test_disabled_transport_warns(self, tmp_path, caplog):
        with caplog.at_level(logging.WARNING, logger="herald.config.herald_config"):
            _make_config(tmp_path)
        assert "deliveries are simulated" in caplog.text


# ---------------------------------------------------------------------------
# TestCollectConfigProblems
# ---------------------------------------------------------------------------


class TestCollectConfigProblems:
    def test_defaults_are_clean(self):
        errors, warnings = collect_config_problems({})
        assert errors == []
        assert any("simulated" in w for w in warnings)

    def test_memory_backend_warns(self):
        _, warnings = collect_config_problems({"storage": {"backend": "memory"}})
        assert any("lost on restart" in w for w in warnings)

    @pytest.mark.parametrize(
        "data,fragment",
        [
            ({"storage": {"backend": "redis"}}, "storage.backend"),
            ({"delivery": {"max_retries": -1}}, "max_retries"),
            ({"scheduler": {"retry_interval_seconds": 0}}, "retry_interval_seconds"),
            ({"workers": {"max_workers": 0}}, "max_workers"),
            ({"workers": {"queue_capacity": 0}}, "queue_capacity"),
            ({"transport": {"simulated_success_rate": 1.5}}, "simulated_success_rate"),
            ({"transport": {"backend": "pigeon"}}, "transport.backend"),
        ],
    )
    def test_errors(self, data, fragment):
        errors, _ = collect_config_problems(data)
        assert any(fragment in e for e in errors)

    def test_error_message_lists_every_problem(self):
        err = ConfigValidationError(["first", "second"])
        assert "  - first" in str(err)
        assert "  - second" in str(err)
