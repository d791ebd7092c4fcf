"""
main.py
-------
Command-line entry point.

Usage::

    anonymigrate migrate --input mysql://user:pw@host/db --output ./copy.db \\
        --tables users,orders --anonymize notes --exclude password_hash
    anonymigrate migrate --config anonymigrate.yaml
    anonymigrate analyze --input postgresql://user:pw@host/db [--table users]

Exit status is 0 on success and 1 on any configuration, connection or table
failure; the reason is printed as ``Error: ...`` on stderr.
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Sequence

from config import CONFIG
from connectors import create_connector
from core.analyzer import AnalysisReporter, format_report
from core.config_parser import (
    build_migration_spec,
    find_default_config,
    load_config_file,
    parse_database_url,
)
from core.session import MigrationSession
from errors import ConfigurationError, MigrationError
from logger import get_logger, set_level
from models.migration import MigrationSpec, ProgressEvent

log = get_logger(__name__)


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="anonymigrate",
        description="Migrate tables between MySQL, PostgreSQL and SQLite, "
                    "masking sensitive fields on the way.",
    )
    parser.add_argument(
        "--log-level",
        help=f"Override the log level (default: {CONFIG.migration.log_level})",
    )
    parser.add_argument(
        "--version", action="version",
        version=f"{CONFIG.app_name} {CONFIG.app_version}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    migrate_parser = subparsers.add_parser("migrate", help="Copy tables with anonymization")
    migrate_parser.add_argument("-c", "--config", help="Path to a YAML/JSON configuration file")
    migrate_parser.add_argument("-i", "--input", help="Source database URL or SQLite file path")
    migrate_parser.add_argument("-o", "--output", help="Destination database URL or SQLite file path")
    migrate_parser.add_argument("-t", "--tables", help="Comma-separated tables (default: all)")
    migrate_parser.add_argument("-a", "--anonymize", help="Comma-separated fields to always mask")
    migrate_parser.add_argument("-e", "--exclude", help="Comma-separated fields to drop")
    migrate_parser.add_argument(
        "-b", "--batch-size", type=int, default=1000, help="Rows per batch (default: 1000)"
    )
    migrate_parser.add_argument(
        "-p", "--parallel", type=int, default=1, help="Tables migrated concurrently (default: 1)"
    )
    migrate_parser.add_argument(
        "--continue-on-error", action="store_true",
        help="Keep migrating remaining tables after a table fails",
    )

    analyze_parser = subparsers.add_parser("analyze", help="Report potentially sensitive fields")
    analyze_parser.add_argument(
        "-i", "--input", required=True, help="Source database URL or SQLite file path"
    )
    analyze_parser.add_argument("-t", "--table", help="Analyze only this table")

    return parser


def resolve_migration_spec(args: argparse.Namespace) -> MigrationSpec:
    """Build the run's spec from --config, --input/--output or a default file."""
    if args.config and (args.input or args.output):
        raise ConfigurationError("Use either --config or --input/--output, not both")
    if args.config:
        return load_config_file(args.config)
    if args.input or args.output:
        if not (args.input and args.output):
            raise ConfigurationError(
                "Either --config or both --input and --output must be specified"
            )
        return build_migration_spec(
            args.input,
            args.output,
            tables=args.tables,
            anonymize=args.anonymize,
            exclude=args.exclude,
            batch_size=args.batch_size,
            parallel=args.parallel,
        )

    default = find_default_config()
    if default is None:
        raise ConfigurationError(
            "No configuration file found. Please provide a config file or use "
            "--input and --output."
        )
    return load_config_file(default)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def print_progress(event: ProgressEvent) -> None:
    total = event.total_rows or "?"
    print(f"  {event.table_name}: {event.rows_processed}/{total} ({event.percentage:.0f}%)")


async def run_migrate(args: argparse.Namespace) -> int:
    spec = resolve_migration_spec(args)
    print("Starting database migration...")
    print(f"Source:      {spec.source.display_name}")
    print(f"Destination: {spec.destination.display_name}")

    async with MigrationSession(spec, progress_cb=print_progress) as session:
        results = await session.migrate(stop_on_error=not args.continue_on_error)

    for result in results:
        print(result)

    failed = [r for r in results if not r.success]
    if failed:
        for result in failed:
            print(f"Error: {result.error}", file=sys.stderr)
        return 1
    print(f"Migration completed successfully ({len(results)} tables).")
    return 0


async def run_analyze(args: argparse.Namespace) -> int:
    endpoint = parse_database_url(args.input)
    async with create_connector(endpoint, read_only=True) as source:
        reports = await AnalysisReporter(source).analyze([args.table] if args.table else None)
    print(format_report(reports))
    return 0


_COMMANDS = {
    "migrate": run_migrate,
    "analyze": run_analyze,
}


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.log_level:
        set_level(args.log_level)

    command = _COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        return 1

    try:
        return asyncio.run(command(args))
    except MigrationError as exc:
        log.debug("Command '%s' failed", args.command, exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
