"""Database management subcommands."""

from __future__ import annotations

import logging
import sys

from herald.db import init_database, schema_status

log = logging.getLogger(__name__)


def run_db(config, args) -> None:
    """Handle db subcommands."""
    if args.db_command == "status":
        _db_status(config)
    else:
        sys.stderr.write("usage: herald -c CONFIG db status\n")
        sys.exit(1)


def _db_status(config) -> None:
    """Check database connectivity and schema status."""
    try:
        db = init_database(config.settings.database)
        db.fetch_value("SELECT 1")
        tables = schema_status(db)
    except Exception as exc:
        log.debug("Database status check failed", exc_info=True)
        sys.stderr.write(f"database: unreachable ({exc})\n")
        sys.exit(1)

    sys.stdout.write("database: connected\n")
    for table, present in tables.items():
        sys.stdout.write(f"  {table}: {'present' if present else 'missing'}\n")
    if not all(tables.values()):
        sys.exit(2)
