"""Herald command-line entry point.

Usage::

    herald -c /etc/herald/config.yaml
    herald -c config.yaml --validate-only
    herald -c config.yaml serve --dev
    herald -c config.yaml worker
    herald -c config.yaml stats
    herald -c config.yaml db status
    python -m herald -c config.yaml
"""

from __future__ import annotations

import argparse
import importlib
import logging
import sys
from pathlib import Path

log = logging.getLogger(__name__)

# subcommand -> (module, handler); imported on dispatch so each command
# loads only what it needs.
_COMMANDS = {
    "serve": ("herald.cli.commands.serve", "run_serve"),
    "worker": ("herald.cli.commands.worker", "run_worker"),
    "stats": ("herald.cli.commands.stats", "run_stats"),
    "db": ("herald.cli.commands.db", "run_db"),
}


def _get_version() -> str:
    from herald import __version__  # noqa: PLC0415

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="herald",
        description="Herald: templated email delivery with retries",
    )
    parser.add_argument(
        "-c",
        "--config",
        required=True,
        metavar="PATH",
        help="Path to the configuration file (YAML or JSON).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Validate the configuration file and exit.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API and delivery threads")
    serve_parser.add_argument(
        "--dev",
        action="store_true",
        default=False,
        help="Use Flask's development server instead of gunicorn.",
    )

    subparsers.add_parser("worker", help="Run the delivery scheduler without the HTTP API")
    subparsers.add_parser("stats", help="Print today's delivery statistics")

    db_parser = subparsers.add_parser("db", help="Database management")
    db_sub = db_parser.add_subparsers(dest="db_command")
    db_sub.add_parser("status", help="Check database connectivity and schema")

    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    sys.stderr.write(f"herald: error: {message}\n")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads config, dispatches."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    config_path = Path(args.config)
    if not config_path.is_file():
        _print_error(f"configuration file not found: {config_path}")
        sys.exit(1)

    # -- bootstrap logging early (basic stderr until config is loaded) ---
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    # -- load & validate config ---
    from herald.config import ConfigValidationError, HeraldConfig  # noqa: PLC0415

    try:
        config = HeraldConfig(config_file=str(config_path), schema_file="bundled")
    except ConfigValidationError as exc:
        _print_error(str(exc))
        sys.exit(1)
    except Exception as exc:
        if args.debug:
            raise
        _print_error(f"failed to load configuration: {exc}")
        sys.exit(1)

    # -- replace bootstrap logging with structured logging ---
    from herald.logging import configure_logging  # noqa: PLC0415

    configure_logging(config.settings.logging)
    if args.debug:
        logging.getLogger("herald").setLevel(logging.DEBUG)

    if args.validate_only:
        _print_settings_summary(config)
        sys.exit(0)

    # No subcommand means serve.
    command = args.command or "serve"
    module_name, func_name = _COMMANDS[command]
    if command == "serve":
        _print_settings_summary(config)
    handler = getattr(importlib.import_module(module_name), func_name)
    handler(config, args)


def _print_settings_summary(config) -> None:
    """Print a short summary of the loaded configuration."""
    s = config.settings
    transport = s.transport.backend if s.transport.enabled else "simulated"
    lines = [
        f"Herald {_get_version()}",
        f"  config:     {config.data.get('_source', '?')}",
        f"  listen:     {s.server.bind}:{s.server.port}",
        f"  storage:    {s.storage.backend}",
        f"  transport:  {transport}",
        f"  retries:    {s.delivery.max_retries} "
        f"(backoff {s.delivery.retry_base_seconds:g}^n, "
        f"cap {s.delivery.retry_max_delay_seconds:g}s)",
        f"  workers:    {s.workers.max_workers} (queue {s.workers.queue_capacity})",
        f"  scheduler:  {'enabled' if s.scheduler.enabled else 'disabled'}",
    ]
    sys.stdout.write("\n".join(lines) + "\n")
