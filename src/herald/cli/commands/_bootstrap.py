"""Shared startup for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING

from herald.app.context import Container
from herald.app.shutdown import ShutdownCoordinator
from herald.db import init_database

if TYPE_CHECKING:
    from pypgkit import Database

    from herald.config.herald_config import HeraldConfig


def open_storage(config: HeraldConfig) -> Database | None:
    """Initialise the database when the ``database`` backend is selected."""
    settings = config.settings
    if settings.storage.backend == "memory":
        return None
    return init_database(settings.database)


def build_container(config: HeraldConfig) -> Container:
    settings = config.settings
    return Container(
        settings,
        db=open_storage(config),
        shutdown_coordinator=ShutdownCoordinator(
            graceful_timeout=settings.server.graceful_timeout,
        ),
    )
