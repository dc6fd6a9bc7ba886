"""Logging subsystem for Herald.

Public API::

    from herald.logging import configure_logging

    configure_logging(settings.logging)
"""

from herald.logging.setup import configure_logging

__all__ = ["configure_logging"]
