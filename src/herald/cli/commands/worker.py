"""Worker subcommand: run the delivery pipeline without the HTTP API.

Blocks until SIGINT/SIGTERM, then stops the sweeps and lets in-flight
deliveries finish (bounded by ``server.graceful_timeout``).
"""

from __future__ import annotations

import logging
import sys

from herald.cli.commands._bootstrap import build_container

log = logging.getLogger(__name__)


def run_worker(config, args) -> None:
    try:
        container = build_container(config)
    except Exception as exc:
        if args.debug:
            raise
        sys.stderr.write(f"herald: error: storage initialisation failed: {exc}\n")
        sys.exit(1)

    coordinator = container.shutdown_coordinator
    container.start_background()
    coordinator.register_signals()
    log.info("Herald worker running; press Ctrl+C to stop")

    # Short waits keep the main thread responsive to signals.
    while not coordinator.wait(timeout=1.0):
        pass
    log.info("Herald worker exited")
