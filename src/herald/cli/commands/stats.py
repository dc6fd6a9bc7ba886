"""Stats subcommand: print today's delivery statistics as JSON."""

from __future__ import annotations

import json
import sys

from herald.api.serializers import serialize_stats
from herald.cli.commands._bootstrap import build_container


def run_stats(config, args) -> None:
    try:
        container = build_container(config)
        service = container.notification_service
        report = {
            "today": serialize_stats(service.get_today_stats()),
            "by_status": service.status_counts(),
        }
    except Exception as exc:
        if args.debug:
            raise
        sys.stderr.write(f"herald: error: could not read statistics: {exc}\n")
        sys.exit(1)

    sys.stdout.write(json.dumps(report, indent=2) + "\n")
