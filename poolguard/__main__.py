"""Entry point for running PoolGuard as a module.

Usage:
    python -m poolguard check --free-chlorine 2.0 --ph 7.4
    python -m poolguard submit --free-chlorine 0.8 --ph 7.3 --pool-id lap
    python -m poolguard sync
    python -m poolguard stats
    python -m poolguard clear --yes
    python -m poolguard run -c /path/to/config.yaml
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from . import __version__
from .app import create_queue, run_app, submit_once, sync_once
from .compliance import generate_compliance_report, should_close_pool
from .config import create_default_config, get_config, print_env_help
from .models.compliance import ChemicalType
from .utils.logging import setup_logging

# Exit code when readings require closing the pool
EXIT_CLOSURE_REQUIRED = 2

DEFAULT_CONFIG_PATHS = [
    "/etc/poolguard/config.yaml",
    "/config/config.yaml",  # Docker default
    "config.yaml",
]


def _add_reading_arguments(parser: argparse.ArgumentParser) -> None:
    for chemical in ChemicalType:
        flag = "--" + chemical.value.replace("_", "-")
        parser.add_argument(
            flag,
            dest=chemical.value,
            type=float,
            default=None,
            metavar="VALUE",
            help=f"{chemical.value.replace('_', ' ')} reading",
        )


def _readings_from_args(args: argparse.Namespace) -> dict:
    return {
        chemical: getattr(args, chemical.value)
        for chemical in ChemicalType
        if getattr(args, chemical.value) is not None
    }


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog="poolguard",
        description="Pool chemical compliance checks with offline sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Check readings against MAHC standards (exit code 2 = close the pool):
  poolguard check --free-chlorine 0.2 --ph 7.4

  # Record a test; it is queued if the broker is unreachable:
  MQTT_HOST=192.168.1.100 poolguard submit --free-chlorine 2.0 --ph 7.4

  # Drain the offline queue once, or keep draining in the background:
  poolguard sync
  poolguard run -c /etc/poolguard/config.yaml
        """,
    )

    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Path to configuration file (optional if using env vars)",
    )
    parser.add_argument(
        "-v", "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--generate-config",
        action="store_true",
        help="Print default configuration and exit",
    )
    parser.add_argument(
        "--env-help",
        action="store_true",
        help="Print environment variable help and exit",
    )

    subparsers = parser.add_subparsers(dest="command")

    check = subparsers.add_parser("check", help="Validate readings and print a compliance report")
    _add_reading_arguments(check)

    submit = subparsers.add_parser("submit", help="Record a chemical test (queued when offline)")
    _add_reading_arguments(submit)
    submit.add_argument("--pool-id", default=None, help="Pool identifier (default from config)")
    submit.add_argument("--technician", default=None, help="Technician name")
    submit.add_argument("--notes", default=None, help="Free-form notes")

    subparsers.add_parser("sync", help="Run one drain pass of the offline queue")
    subparsers.add_parser("stats", help="Print offline queue statistics")

    clear = subparsers.add_parser("clear", help="Delete every pending queue item")
    clear.add_argument("--yes", action="store_true", help="Confirm the irreversible clear")

    subparsers.add_parser("run", help="Run the background sync service")

    return parser


def _find_config_path(config_path):
    if config_path:
        return config_path
    for path in DEFAULT_CONFIG_PATHS:
        if Path(path).exists():
            return path
    return None


def main(argv=None) -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success, 1 for error, 2 when the pool must close)
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.generate_config:
        print(create_default_config())
        return 0

    if args.env_help:
        print(print_env_help())
        return 0

    if args.command is None:
        parser.print_help()
        return 1

    if args.command == "check":
        readings = _readings_from_args(args)
        if not readings:
            print("Error: provide at least one reading", file=sys.stderr)
            return 1
        report = generate_compliance_report(readings)
        closure = should_close_pool(readings)
        _print_json({"report": report.to_dict(), "closure": closure.model_dump()})
        return EXIT_CLOSURE_REQUIRED if closure.should_close else 0

    try:
        config_path = _find_config_path(args.config)
        config = get_config(config_path)

        if args.command == "run":
            asyncio.run(run_app(config))
            return 0

        setup_logging(
            level=config.logging.level,
            log_file=config.logging.file,
            format_string=config.logging.format,
        )

        if args.command == "submit":
            readings = _readings_from_args(args)
            if not readings:
                print("Error: provide at least one reading", file=sys.stderr)
                return 1
            outcome = asyncio.run(
                submit_once(readings, config, args.pool_id, args.technician, args.notes)
            )
            _print_json(outcome.to_dict())
            return EXIT_CLOSURE_REQUIRED if outcome.closure.should_close else 0

        if args.command == "sync":
            result = asyncio.run(sync_once(config))
            _print_json(result.to_dict())
            return 0 if result.success else 1

        queue = create_queue(config)

        if args.command == "stats":
            _print_json(queue.get_queue_stats().model_dump())
            return 0

        if args.command == "clear":
            if not args.yes:
                print("Refusing to clear the queue without --yes", file=sys.stderr)
                return 1
            queue.clear_queue()
            print("Queue cleared")
            return 0

    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 0
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 1


if __name__ == "__main__":
    sys.exit(main())
