"""Database subsystem for Herald.

Public API::

    from herald.db import init_database
"""

from herald.db.init import init_database, schema_status

__all__ = [
    "init_database",
    "schema_status",
]
