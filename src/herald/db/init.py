"""PostgreSQL bootstrap for the ``database`` storage backend.

``init_database`` opens the PyPGKit connection pool once per process.
With ``database.auto_setup`` it also applies the bundled ``schema.sql``;
without it, missing tables are only reported, since the repositories
would fail on first use.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from pypgkit import Database, DatabaseConfig

if TYPE_CHECKING:
    from herald.config.settings import DatabaseSettings

_SCHEMA_PATH = Path(__file__).parent / "schema.sql"

#: Tables created by ``schema.sql``, in creation order.
TABLES = ("templates", "notifications")

log = logging.getLogger(__name__)


def init_database(settings: DatabaseSettings) -> Database:
    """Return the process-wide :class:`Database`, creating it on first call."""
    if Database.is_initialized():
        return Database.get_instance()

    log.info(
        "Connecting to postgresql://%s@%s:%s/%s (pool %d-%d)",
        settings.user,
        settings.host,
        settings.port,
        settings.database,
        settings.min_connections,
        settings.max_connections,
    )
    db = Database.init(
        config=DatabaseConfig(
            host=settings.host,
            port=settings.port,
            database=settings.database,
            user=settings.user,
            password=settings.password,
            sslmode=settings.sslmode,
            min_connections=settings.min_connections,
            max_connections=settings.max_connections,
            connection_timeout=settings.connection_timeout,
        ),
        schema_path=_SCHEMA_PATH if settings.auto_setup else None,
        auto_setup=settings.auto_setup,
        interactive=False,
    )

    if not settings.auto_setup:
        missing = [table for table, present in schema_status(db).items() if not present]
        if missing:
            log.warning(
                "Tables %s are missing; apply %s or set database.auto_setup",
                ", ".join(missing),
                _SCHEMA_PATH.name,
            )
    return db


def schema_status(db: Database) -> dict[str, bool]:
    """Map each table Herald needs to whether it exists in the current schema."""
    return {
        table: bool(
            db.fetch_value(
                "SELECT EXISTS (SELECT 1 FROM information_schema.tables "
                "WHERE table_schema = current_schema() AND table_name = %s)",
                (table,),
            ),
        )
        for table in TABLES
    }
