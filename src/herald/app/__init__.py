"""Flask application layer."""

from herald.app.factory import create_app

__all__ = ["create_app"]
