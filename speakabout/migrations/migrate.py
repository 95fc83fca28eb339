"""
Schema migration CLI.

Usage:
  speakabout-migrate                  Apply all pending migrations
  speakabout-migrate --target 003     Apply pending migrations up to 003
  speakabout-migrate --list           Show applied and pending migrations
  speakabout-migrate --env staging    Run against a specific environment
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from speakabout.core.db_manager import close_database, get_db, init_database
from speakabout.core.environment import ConfigurationError
from speakabout.core.logging_config import configure_logging
from speakabout.migrations.migration_runner import MigrationError, MigrationRunner

logger = logging.getLogger(__name__)


async def list_migrations(runner: MigrationRunner) -> None:
    await runner.ensure_version_table()
    applied = await runner.applied_versions()
    for migration in runner.migrations:
        mark = "applied" if migration.version in applied else "pending"
        print(f"{migration.label:<40} {mark}")


async def run(args: argparse.Namespace) -> int:
    await init_database(args.env)
    try:
        runner = MigrationRunner(get_db())
        if args.list:
            await list_migrations(runner)
            return 0
        applied = await runner.apply(target=args.target)
        for migration in applied:
            print(f"applied {migration.label}")
        if not applied:
            print("Schema is up to date")
        return 0
    finally:
        await close_database()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="speakabout-migrate",
        description="Apply versioned schema migrations to the back-office database.",
    )
    parser.add_argument("--list", action="store_true", help="Show applied and pending migrations")
    parser.add_argument("--target", metavar="VERSION", help="Apply pending migrations up to this version")
    parser.add_argument("--env", choices=["test", "staging", "prod"], help="Override the detected environment")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()
    try:
        return asyncio.run(run(args))
    except ConfigurationError as e:
        logger.error("%s", e)
        return 2
    except (MigrationError, ValueError) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
