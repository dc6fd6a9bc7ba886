"""Loads, resolves and validates the Herald configuration file.

:class:`HeraldConfig` is a :class:`configkit.ConfigKit` singleton.  The
file is read, ``${VAR}`` / ``${VAR:-default}`` references are replaced
from the environment, the result is checked against the bundled
``schema.json`` and then against :func:`collect_config_problems`.
Finally the raw mapping is turned into the frozen
:class:`~herald.config.settings.HeraldSettings` tree.

Code outside the CLI reads the loaded instance through
:func:`get_config`::

    from herald.config import get_config

    get_config().settings.delivery.max_retries
    get_config().get("transport.sendgrid.api_url")
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

from configkit import ConfigKit, ConfigKitMeta

from herald.config.settings import HeraldSettings, build_settings

_SCHEMA_PATH = Path(__file__).parent / "schema.json"

# Whole-value references only: "${NAME}" or "${NAME:-fallback}".
_ENV_REF = re.compile(r"^\$\{(?P<name>[^}:]+?)(?::-(?P<default>.*))?\}$", re.DOTALL)

_KNOWN_TRANSPORT_BACKENDS = frozenset({"sendgrid", "smtp"})
_KNOWN_STORAGE_BACKENDS = frozenset({"database", "memory"})

log = logging.getLogger(__name__)

_instance: HeraldConfig | None = None


def get_config() -> HeraldConfig:
    """The loaded :class:`HeraldConfig`; ``RuntimeError`` before the CLI created it."""
    if _instance is None:
        msg = "Configuration not initialised; construct HeraldConfig(config_file=...) first"
        raise RuntimeError(msg)
    return _instance


class ConfigValidationError(Exception):
    """One or more configuration problems, reported together."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        listing = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Invalid Herald configuration:\n{listing}")


def _substitute_env(value: Any, where: str, unresolved: list[str]) -> Any:  # noqa: ANN401
    """Return *value* with environment references replaced, recursing into containers.

    References that cannot be resolved are appended to *unresolved*
    and left in place.
    """
    if isinstance(value, dict):
        return {
            key: _substitute_env(item, f"{where}.{key}" if where else key, unresolved)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [
            _substitute_env(item, f"{where}[{idx}]", unresolved) for idx, item in enumerate(value)
        ]
    if not isinstance(value, str):
        return value

    ref = _ENV_REF.match(value)
    if ref is None:
        return value
    name, default = ref.group("name"), ref.group("default")
    if name in os.environ:
        return os.environ[name]
    if default is not None:
        return default
    unresolved.append(f"{where}: environment variable {name} is not set and has no default")
    return value


def collect_config_problems(data: dict) -> tuple[list[str], list[str]]:
    """Return ``(errors, warnings)`` for cross-field problems in raw *data*."""
    errors: list[str] = []
    warnings: list[str] = []

    storage = data.get("storage") or {}
    delivery = data.get("delivery") or {}
    scheduler = data.get("scheduler") or {}
    workers = data.get("workers") or {}
    transport = data.get("transport") or {}
    database = data.get("database") or {}

    # -- storage --
    backend = storage.get("backend", "database")
    if backend not in _KNOWN_STORAGE_BACKENDS:
        errors.append(
            f"storage.backend must be one of {sorted(_KNOWN_STORAGE_BACKENDS)} (got '{backend}')",
        )
    if backend == "memory":
        warnings.append(
            "storage.backend is 'memory'; notifications are lost on restart",
        )

    # -- database --
    min_conn = database.get("min_connections", 2)
    max_conn = database.get("max_connections", 10)
    if min_conn > max_conn:
        errors.append(
            f"database.min_connections ({min_conn}) must be <= "
            f"database.max_connections ({max_conn})",
        )

    # -- delivery --
    base = delivery.get("retry_base_seconds", 2.0)
    cap = delivery.get("retry_max_delay_seconds", 60.0)
    if base > cap:
        errors.append(
            f"delivery.retry_base_seconds ({base}) must be <= "
            f"delivery.retry_max_delay_seconds ({cap})",
        )
    if delivery.get("max_retries", 3) < 0:
        errors.append("delivery.max_retries must be >= 0")

    # -- scheduler --
    for key in ("pending_interval_seconds", "retry_interval_seconds", "stats_interval_seconds"):
        value = scheduler.get(key)
        if value is not None and value <= 0:
            errors.append(f"scheduler.{key} must be > 0 (got {value})")

    # -- workers --
    if workers.get("max_workers", 5) < 1:
        errors.append("workers.max_workers must be >= 1")
    if workers.get("queue_capacity", 100) < 1:
        errors.append("workers.queue_capacity must be >= 1")

    # -- transport --
    rate = transport.get("simulated_success_rate", 0.9)
    if not 0.0 <= rate <= 1.0:
        errors.append(
            f"transport.simulated_success_rate must be within [0, 1] (got {rate})",
        )
    tbackend = transport.get("backend", "sendgrid")
    if tbackend not in _KNOWN_TRANSPORT_BACKENDS:
        errors.append(
            f"transport.backend must be one of {sorted(_KNOWN_TRANSPORT_BACKENDS)} "
            f"(got '{tbackend}')",
        )
    if transport.get("enabled"):
        if not transport.get("from_address"):
            errors.append(
                "transport.from_address is required when transport.enabled is true",
            )
        if tbackend == "sendgrid" and not (transport.get("sendgrid") or {}).get("api_key"):
            errors.append(
                "transport.sendgrid.api_key is required when transport.backend is 'sendgrid'",
            )
        if tbackend == "smtp" and not (transport.get("smtp") or {}).get("host"):
            errors.append(
                "transport.smtp.host is required when transport.backend is 'smtp'",
            )
    else:
        warnings.append(
            "transport.enabled is false; deliveries are simulated "
            f"(success rate {rate:.0%})",
        )

    return errors, warnings


class HeraldConfig(ConfigKit):
    """Herald's configuration singleton.

    The schema is always the bundled ``config/schema.json``; the
    *schema_file* argument is accepted so callers can pass the same
    arguments on every construction, which :class:`ConfigKitMeta`
    requires of a singleton.
    """

    def __init__(
        self,
        *,
        config_file: str | Path,
        schema_file: str | Path | None = None,  # noqa: ARG002
    ) -> None:
        global _instance  # noqa: PLW0603

        super().__init__(config_file=config_file, schema_file=_SCHEMA_PATH)
        self._settings: HeraldSettings = build_settings(self.data)
        _instance = self

    def _load(self) -> None:
        # Substitute before ConfigKit validates, so the schema sees real values.
        super()._load()
        unresolved: list[str] = []
        resolved = _substitute_env(self._data, "", unresolved)
        if unresolved:
            raise ConfigValidationError(unresolved)
        self._data.clear()
        self._data.update(resolved)

    @property
    def settings(self) -> HeraldSettings:
        return self._settings

    def additional_checks(self) -> None:
        """Cross-field checks; ConfigKit calls this once the schema passes."""
        errors, warnings = collect_config_problems(self.data)
        for warning in warnings:
            log.warning("Config warning: %s", warning)
        if errors:
            raise ConfigValidationError(errors)

    @classmethod
    def reset(cls) -> None:
        """Forget the loaded instance so tests can build another."""
        global _instance  # noqa: PLW0603
        _instance = None
        ConfigKitMeta.reset()

    def __repr__(self) -> str:
        return f"<HeraldConfig {self.data.get('_source', '?')}>"
