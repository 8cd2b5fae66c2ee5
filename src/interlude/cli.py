"""Command-line interface for Interlude - decision log queries and status."""

import argparse
import json
import logging
import sys
from datetime import datetime, timedelta
from pathlib import Path

from interlude import __version__

logger = logging.getLogger(__name__)

DECISIONS_DB = "decisions.db"
PREFERENCES_DB = "preferences.db"


def _setup_logging(verbose: bool) -> None:
    from interlude.config import get_config

    level = logging.DEBUG if verbose else getattr(logging, str(get_config().LOG_LEVEL).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _decision_store():
    from interlude.config import get_config
    from interlude.store.decision_log import DecisionLogStore

    return DecisionLogStore(get_config().data_path / DECISIONS_DB)


def cmd_decisions(args: argparse.Namespace) -> int:
    """Show recent decision explanations."""
    from interlude.observability.report import format_decisions

    store = _decision_store()

    if args.export:
        since = datetime.now() - timedelta(days=args.days) if args.days else None
        written = store.export_jsonl(Path(args.export), since=since)
        print(f"Exported {written} decisions to {args.export}")
        return 0

    explanations = store.recent(limit=args.limit, target_app=args.app)
    print(format_decisions(explanations, output_format=args.format, verbose=args.details))
    return 0


def cmd_summary(args: argparse.Namespace) -> int:
    """Show decision analytics over a trailing window."""
    from interlude.observability.report import format_summary

    store = _decision_store()
    since = datetime.now() - timedelta(days=args.days)
    print(format_summary(store.summary(since), output_format=args.format))
    return 0


def cmd_cleanup(args: argparse.Namespace) -> int:
    """Delete decision records past the retention window."""
    from interlude.config import get_config

    days = args.days if args.days is not None else get_config().DECISION_RETENTION_DAYS
    store = _decision_store()
    deleted = store.cleanup(older_than_days=days)
    print(f"Deleted {deleted} decisions older than {days} days")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Show configuration and rate limiter status."""
    from interlude.config import get_config
    from interlude.engine.rate_limiter import RateLimiter
    from interlude.store.preferences import SqliteCounterStore

    config = get_config()

    print(f"Interlude {__version__}")
    print(f"Data directory: {config.data_path}")

    errors = config.validate()
    if errors:
        print("\nConfiguration errors:")
        for error in errors:
            print(f"  - {error}")
    else:
        print("\nConfiguration: OK")

    print("\nMonitored apps:")
    for app in config.MONITORED_APPS:
        print(f"  {app}")

    limiter = RateLimiter(SqliteCounterStore(config.data_path / PREFERENCES_DB), config=config)
    stats = limiter.get_stats()

    if args.json:
        print(json.dumps(stats, indent=2, default=str))
        return 1 if errors else 0

    print("\nRate limiter:")
    for key, value in stats.items():
        print(f"  {key}: {value}")

    decisions = _decision_store().count()
    print(f"\nDecisions logged: {decisions}")

    return 1 if errors else 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="interlude",
        description="Interlude - adaptive screen-time interventions",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # interlude decisions
    decisions_parser = subparsers.add_parser(
        "decisions",
        help="Show recent decisions",
    )
    decisions_parser.add_argument(
        "--limit",
        type=int,
        default=20,
        help="Maximum number of decisions (default: 20)",
    )
    decisions_parser.add_argument(
        "--app",
        default=None,
        help="Only decisions for this app",
    )
    decisions_parser.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)",
    )
    decisions_parser.add_argument(
        "--details",
        action="store_true",
        help="Include detailed explanations",
    )
    decisions_parser.add_argument(
        "--export",
        default=None,
        help="Write decisions to a JSONL file instead of printing",
    )
    decisions_parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="With --export, only the last N days",
    )
    decisions_parser.set_defaults(func=cmd_decisions)

    # interlude summary
    summary_parser = subparsers.add_parser(
        "summary",
        help="Show decision analytics",
    )
    summary_parser.add_argument(
        "--days",
        type=int,
        default=7,
        help="Trailing window in days (default: 7)",
    )
    summary_parser.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)",
    )
    summary_parser.set_defaults(func=cmd_summary)

    # interlude cleanup
    cleanup_parser = subparsers.add_parser(
        "cleanup",
        help="Delete old decision records",
    )
    cleanup_parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Retention in days (default: DECISION_RETENTION_DAYS)",
    )
    cleanup_parser.set_defaults(func=cmd_cleanup)

    # interlude status
    status_parser = subparsers.add_parser("status", help="Show system status")
    status_parser.add_argument(
        "--json",
        action="store_true",
        help="Print rate limiter stats as JSON",
    )
    status_parser.set_defaults(func=cmd_status)

    args = parser.parse_args()

    # Show help if no command
    if args.command is None:
        parser.print_help()
        return 0

    _setup_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
