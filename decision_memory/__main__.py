"""Entry point for the Decision Memory CLI and hook commands."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import NoReturn

logger = logging.getLogger(__name__)


def run_version() -> None:
    from decision_memory import __version__

    print(f"decision-memory {__version__}")


def run_install(args: argparse.Namespace) -> int:
    """Detect the capability tier and persist it.

    Args:
        args: Parsed command line arguments.

    Returns:
        Exit code (0 for success, 1 when a precondition fails).
    """
    from decision_memory.config import get_settings
    from decision_memory.core.errors import PreconditionError
    from decision_memory.services.tier_detection import (
        TierDetector,
        format_tier_report,
        save_tier_config,
    )

    settings = get_settings()

    log_level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(level=log_level, format="%(levelname)s: %(message)s")

    try:
        report = TierDetector(settings).detect()
    except PreconditionError as e:
        print(f"Error: {e}")
        if e.remediation:
            print(e.remediation)
        return 1

    if not save_tier_config(report, settings.tier_config_path):
        print(f"Warning: could not write {settings.tier_config_path}")

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print(format_tier_report(report))
    return 0


def run_tier(args: argparse.Namespace) -> int:
    """Show the tier recorded by the last ``install``."""
    from decision_memory.config import get_settings
    from decision_memory.services.tier_detection import load_tier_config

    settings = get_settings()
    config = load_tier_config(settings.tier_config_path)
    if config is None:
        print("Not installed. Run `decision-memory install` first.")
        return 1

    if args.json:
        print(json.dumps(config, indent=2))
        return 0

    print(f"Tier {config['tier']} ({config.get('tier_name', 'unknown')})")
    print(f"Detected at: {config.get('tier_detected_at', 'unknown')}")
    print(f"Store: {'available' if config.get('store_available') else 'unavailable'}")
    print(f"Embeddings: {'available' if config.get('embedding_available') else 'unavailable'}")
    return 0


def run_hook(args: argparse.Namespace) -> int:
    from decision_memory.hooks.dispatcher import main as dispatch_main

    return dispatch_main(args.event)


def build_parser() -> argparse.ArgumentParser:
    from decision_memory.hooks.dispatcher import EVENTS

    parser = argparse.ArgumentParser(
        prog="decision-memory",
        description="Decision memory hooks and installation tools",
    )
    parser.add_argument(
        "--version",
        "-V",
        action="store_true",
        help="Show version and exit",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="Available commands",
    )

    install_parser = subparsers.add_parser(
        "install",
        help="Detect the capability tier and save it to the config directory",
    )
    install_parser.add_argument(
        "--json",
        action="store_true",
        help="Output the tier report as JSON",
    )
    install_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    tier_parser = subparsers.add_parser(
        "tier",
        help="Show the installed capability tier",
    )
    tier_parser.add_argument(
        "--json",
        action="store_true",
        help="Output the raw tier config",
    )

    hook_parser = subparsers.add_parser(
        "hook",
        help="Run a hook event (reads JSON on stdin, writes JSON on stdout)",
    )
    hook_parser.add_argument(
        "event",
        help=f"Hook event ({', '.join(EVENTS)}; PascalCase and camelCase accepted)",
    )

    return parser


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point with subcommand support."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        run_version()
        sys.exit(0)

    if args.command == "install":
        sys.exit(run_install(args))
    elif args.command == "tier":
        sys.exit(run_tier(args))
    elif args.command == "hook":
        sys.exit(run_hook(args))

    parser.print_help()
    sys.exit(1)


if __name__ == "__main__":
    main()
