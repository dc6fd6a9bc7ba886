"""HTTP API layer: Flask blueprint registration.

Call :func:`register_blueprints` during application startup.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flask import Flask

API_PREFIX = "/api"


def register_blueprints(app: Flask) -> None:
    """Mount the notification and template endpoints under ``/api``."""
    from herald.api.routes import api_bp  # noqa: PLC0415

    app.register_blueprint(api_bp, url_prefix=API_PREFIX)
