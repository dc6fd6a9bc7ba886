"""Serve subcommand: HTTP API plus delivery threads."""

from __future__ import annotations

import logging
import sys

from herald.app import create_app
from herald.cli.commands._bootstrap import build_container

log = logging.getLogger(__name__)


def run_serve(config, args) -> None:
    """Start the Herald server."""
    try:
        container = build_container(config)
    except Exception as exc:
        if args.debug:
            raise
        sys.stderr.write(f"herald: error: storage initialisation failed: {exc}\n")
        sys.exit(1)

    dev = getattr(args, "dev", False)
    # Under gunicorn the delivery threads start in the forked worker.
    app = create_app(config=config, container=container, start_background=dev)

    if dev:
        log.info("Starting development server (not for production)")
        app.run(
            host=config.settings.server.bind,
            port=config.settings.server.port,
            debug=args.debug,
            use_reloader=False,
            threaded=True,
        )
        return

    from herald.server.gunicorn_app import run_gunicorn  # noqa: PLC0415

    run_gunicorn(app, container, config.settings.server)
