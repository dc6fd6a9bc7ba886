"""Configuration subsystem for Herald.

Public API::

    from herald.config import get_config, HeraldConfig

    # At startup (CLI only):
    HeraldConfig(config_file="config.yaml", schema_file="bundled")

    # Everywhere else:
    cfg = get_config()
    retries = cfg.settings.delivery.max_retries   # typed access
    url = cfg.get("transport.sendgrid.api_url")   # dynamic dot-path
"""

from herald.config.herald_config import (
    ConfigValidationError,
    HeraldConfig,
    get_config,
)
from herald.config.settings import (
    DatabaseSettings,
    DeliverySettings,
    HeraldSettings,
    LoggingSettings,
    SchedulerSettings,
    SendGridSettings,
    ServerSettings,
    SmtpSettings,
    StorageSettings,
    TransportSettings,
    WorkerSettings,
    build_settings,
)

__all__ = [
    "ConfigValidationError",
    "DatabaseSettings",
    "DeliverySettings",
    "HeraldConfig",
    "HeraldSettings",
    "LoggingSettings",
    "SchedulerSettings",
    "SendGridSettings",
    "ServerSettings",
    "SmtpSettings",
    "StorageSettings",
    "TransportSettings",
    "WorkerSettings",
    "build_settings",
    "get_config",
]
