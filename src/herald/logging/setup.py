"""Logging for the ``herald`` logger hierarchy.

``configure_logging`` installs one stderr handler whose formatter is
chosen by ``logging.format``: JSON lines for production, or a compact
text line for consoles.  A :class:`RequestContextFilter` on that handler
makes ``request_id``, ``client_ip``, ``method``, ``path`` and
``notification_id`` available on every record.

Delivery code logs state changes with ``extra={"notification_id": ...,
"event": ...}``; the JSON formatter copies such extras into the object
verbatim.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from flask import g, has_request_context, request

if TYPE_CHECKING:
    from herald.config.settings import LoggingSettings

_CONTEXT_DEFAULTS = {
    "request_id": "-",
    "client_ip": "-",
    "method": None,
    "path": None,
    "notification_id": None,
}

# Everything a bare LogRecord carries, plus what formatting adds.  Other
# attributes on a record came from ``extra``.
_BUILTIN_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)),
) | {"message", "asctime", "taskName"} | frozenset(_CONTEXT_DEFAULTS)

_NOISY_LOGGERS = ("werkzeug", "gunicorn", "gunicorn.access", "gunicorn.error", "psycopg.pool")


class StructuredFormatter(logging.Formatter):
    """One JSON object per record.

    Context attributes are emitted only when they hold a real value;
    extras are emitted as given, with non-JSON values stringified.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        payload.update(
            (attr, value)
            for attr in _CONTEXT_DEFAULTS
            if (value := getattr(record, attr, None)) not in (None, "-")
        )
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _BUILTIN_ATTRS and not key.startswith("_") and key not in payload
        )
        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    """``2026-01-01 12:00:00 INFO     [request-id] thread logger: message``"""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s [%(request_id)s] %(threadName)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


class RequestContextFilter(logging.Filter):
    """Guarantee the context attributes on every record.

    Inside a Flask request they are filled from ``flask.g`` and
    ``flask.request``, including ``notification_id`` bound by routes
    that address one notification.  Elsewhere (sweeps, delivery
    workers) they keep whatever the caller passed in ``extra`` and
    otherwise fall back to ``_CONTEXT_DEFAULTS``.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        for attr, default in _CONTEXT_DEFAULTS.items():
            if not hasattr(record, attr):
                setattr(record, attr, default)

        if has_request_context():
            record.request_id = g.get("request_id", record.request_id)  # type: ignore[attr-defined]
            record.client_ip = request.remote_addr or "-"  # type: ignore[attr-defined]
            record.method = request.method  # type: ignore[attr-defined]
            record.path = request.path  # type: ignore[attr-defined]
            if record.notification_id is None:  # type: ignore[attr-defined]
                record.notification_id = g.get("notification_id")  # type: ignore[attr-defined]
        return True


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """Route the ``herald`` hierarchy to stderr at ``settings.level``.

    Safe to call again: earlier handlers on the ``herald`` logger are
    dropped.  Returns that logger.
    """
    logger = logging.getLogger("herald")
    logger.setLevel(getattr(logging, settings.level.upper(), logging.INFO))
    logger.handlers.clear()
    logger.propagate = False

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(StructuredFormatter() if settings.format == "json" else TextFormatter())
    handler.addFilter(RequestContextFilter())
    logger.addHandler(handler)

    # Access lines are INFO; keep them even when the app runs at WARNING.
    logging.getLogger("herald.access").setLevel(logging.INFO)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return logger
