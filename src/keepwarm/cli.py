"""Command-line interface argument parsing for keepwarm.

Every option overrides the matching ``PING_*`` environment variable.
"""

from __future__ import annotations

import argparse
from pathlib import Path

from keepwarm.config import VALID_VERBOSITIES


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        args: Optional list of arguments to parse. If None, uses sys.argv.

    Returns:
        Parsed arguments namespace. Options left unset are None (or False
        for flags) so that environment values apply.
    """
    parser = argparse.ArgumentParser(
        description="keepwarm - periodic HTTP liveness prober",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("--url", default=None, help="URL to probe (overrides PING_URL)")

    parser.add_argument(
        "--interval-minutes",
        type=float,
        default=None,
        help="Base probe interval in minutes (overrides PING_INTERVAL_MINUTES)",
    )

    parser.add_argument(
        "--timeout-seconds",
        type=float,
        default=None,
        help="Per-probe timeout in seconds (overrides PING_TIMEOUT_SECONDS)",
    )

    parser.add_argument(
        "--log-level",
        choices=sorted(VALID_VERBOSITIES),
        default=None,
        help="Prober verbosity (overrides PING_LOG_LEVEL)",
    )

    parser.add_argument(
        "--threshold",
        type=int,
        default=None,
        help="Consecutive failures before escalation (overrides PING_CRITICAL_FAILURES)",
    )

    parser.add_argument(
        "--timezone",
        default=None,
        help="IANA time zone for the daily cutoff (overrides PING_TIMEZONE)",
    )

    parser.add_argument(
        "--persist",
        action="store_true",
        help="Persist the auto-restart sentinel while running (overrides PING_PERSIST)",
    )

    parser.add_argument(
        "--state-file",
        type=Path,
        default=None,
        help="JSON file for the auto-restart sentinel (overrides PING_STATE_FILE)",
    )

    parser.add_argument(
        "--webhook-url",
        default=None,
        help="Webhook receiving escalations (overrides PING_WEBHOOK_URL)",
    )

    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to .env file (default: ./.env)",
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--once",
        action="store_true",
        help="Probe once and exit (0 if healthy, 1 otherwise)",
    )
    mode.add_argument(
        "--resume",
        action="store_true",
        help="Start only if a previous run left the auto-restart sentinel behind",
    )

    return parser.parse_args(args)


__all__ = ["parse_args"]
