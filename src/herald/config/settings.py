"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
JSON Schema defaults exist only for documentation; these builders
are what the application actually reads.

Access pattern::

    from herald.config import get_config

    delivery = get_config().settings.delivery
    print(delivery.max_retries, delivery.retry_max_delay_seconds)
"""

from __future__ import annotations

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ServerSettings:
    """HTTP API bind address and shutdown behaviour."""

    bind: str
    port: int
    threads: int
    timeout: int
    graceful_timeout: int
    max_request_body_bytes: int


def _build_server(data: dict | None) -> ServerSettings:
    d = data or {}
    return ServerSettings(
        bind=d.get("bind", "127.0.0.1"),
        port=d.get("port", 8080),
        threads=d.get("threads", 8),
        timeout=d.get("timeout", 30),
        graceful_timeout=d.get("graceful_timeout", 30),
        max_request_body_bytes=d.get("max_request_body_bytes", 65536),
    )


# ---------------------------------------------------------------------------
# Database / storage
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """PostgreSQL connection and pool settings."""

    host: str
    port: int
    database: str
    user: str
    password: str
    sslmode: str
    min_connections: int
    max_connections: int
    connection_timeout: float
    auto_setup: bool


def _build_database(data: dict | None) -> DatabaseSettings:
    d = data or {}
    return DatabaseSettings(
        host=d.get("host", "localhost"),
        port=d.get("port", 5432),
        database=d.get("database", "herald"),
        user=d.get("user", "herald"),
        password=d.get("password", ""),
        sslmode=d.get("sslmode", "prefer"),
        min_connections=d.get("min_connections", 2),
        max_connections=d.get("max_connections", 10),
        connection_timeout=d.get("connection_timeout", 10.0),
        auto_setup=d.get("auto_setup", False),
    )


@dataclass(frozen=True)
class StorageSettings:
    """Which record store backs the repositories (``database`` or ``memory``)."""

    backend: str


def _build_storage(data: dict | None) -> StorageSettings:
    d = data or {}
    return StorageSettings(backend=d.get("backend", "database"))


# ---------------------------------------------------------------------------
# Delivery / retry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DeliverySettings:
    """Retry budget and backoff curve applied to every new notification."""

    max_retries: int
    retry_base_seconds: float
    retry_max_delay_seconds: float
    pending_batch_size: int


def _build_delivery(data: dict | None) -> DeliverySettings:
    d = data or {}
    return DeliverySettings(
        max_retries=d.get("max_retries", 3),
        retry_base_seconds=d.get("retry_base_seconds", 2.0),
        retry_max_delay_seconds=d.get("retry_max_delay_seconds", 60.0),
        pending_batch_size=d.get("pending_batch_size", 10),
    )


# ---------------------------------------------------------------------------
# Scheduler / workers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SchedulerSettings:
    """Intervals of the three periodic sweeps."""

    enabled: bool
    pending_interval_seconds: float
    pending_initial_delay_seconds: float
    retry_interval_seconds: float
    retry_initial_delay_seconds: float
    stats_interval_seconds: float
    stats_initial_delay_seconds: float


def _build_scheduler(data: dict | None) -> SchedulerSettings:
    d = data or {}
    return SchedulerSettings(
        enabled=d.get("enabled", True),
        pending_interval_seconds=d.get("pending_interval_seconds", 30),
        pending_initial_delay_seconds=d.get("pending_initial_delay_seconds", 10),
        retry_interval_seconds=d.get("retry_interval_seconds", 120),
        retry_initial_delay_seconds=d.get("retry_initial_delay_seconds", 60),
        stats_interval_seconds=d.get("stats_interval_seconds", 300),
        stats_initial_delay_seconds=d.get("stats_initial_delay_seconds", 30),
    )


@dataclass(frozen=True)
class WorkerSettings:
    """Bounded delivery worker pool."""

    max_workers: int
    queue_capacity: int
    thread_name_prefix: str


def _build_workers(data: dict | None) -> WorkerSettings:
    d = data or {}
    return WorkerSettings(
        max_workers=d.get("max_workers", 5),
        queue_capacity=d.get("queue_capacity", 100),
        thread_name_prefix=d.get("thread_name_prefix", "herald-delivery"),
    )


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SendGridSettings:
    """SendGrid v3 HTTP API credentials."""

    api_key: str
    api_url: str
    timeout_seconds: int


@dataclass(frozen=True)
class SmtpSettings:
    """SMTP outbound email delivery settings."""

    host: str
    port: int
    username: str
    password: str
    use_tls: bool
    timeout_seconds: int


@dataclass(frozen=True)
class TransportSettings:
    """Outbound transport selection.

    ``enabled=False`` selects the simulated transport regardless of
    ``backend``.
    """

    enabled: bool
    backend: str
    from_address: str
    from_name: str
    simulated_success_rate: float
    simulated_latency_seconds: float
    sendgrid: SendGridSettings
    smtp: SmtpSettings


def _build_transport(data: dict | None) -> TransportSettings:
    d = data or {}
    sg = d.get("sendgrid") or {}
    smtp = d.get("smtp") or {}
    return TransportSettings(
        enabled=d.get("enabled", False),
        backend=d.get("backend", "sendgrid"),
        from_address=d.get("from_address", ""),
        from_name=d.get("from_name", "Herald"),
        simulated_success_rate=d.get("simulated_success_rate", 0.9),
        simulated_latency_seconds=d.get("simulated_latency_seconds", 0.5),
        sendgrid=SendGridSettings(
            api_key=sg.get("api_key", ""),
            api_url=sg.get("api_url", "https://api.sendgrid.com/v3/mail/send"),
            timeout_seconds=sg.get("timeout_seconds", 30),
        ),
        smtp=SmtpSettings(
            host=smtp.get("host", ""),
            port=smtp.get("port", 587),
            username=smtp.get("username", ""),
            password=smtp.get("password", ""),
            use_tls=smtp.get("use_tls", True),
            timeout_seconds=smtp.get("timeout_seconds", 30),
        ),
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingSettings:
    """Application logging configuration (level, format)."""

    level: str
    format: str


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "json"),
    )


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HeraldSettings:
    """Root of the typed settings tree."""

    server: ServerSettings
    database: DatabaseSettings
    storage: StorageSettings
    delivery: DeliverySettings
    scheduler: SchedulerSettings
    workers: WorkerSettings
    transport: TransportSettings
    logging: LoggingSettings


def build_settings(data: dict) -> HeraldSettings:
    """Build the full typed settings tree from raw config data.

    Called once during :class:`HeraldConfig` initialization after
    schema validation and environment-variable resolution.
    """
    return HeraldSettings(
        server=_build_server(data.get("server")),
        database=_build_database(data.get("database")),
        storage=_build_storage(data.get("storage")),
        delivery=_build_delivery(data.get("delivery")),
        scheduler=_build_scheduler(data.get("scheduler")),
        workers=_build_workers(data.get("workers")),
        transport=_build_transport(data.get("transport")),
        logging=_build_logging(data.get("logging")),
    )
