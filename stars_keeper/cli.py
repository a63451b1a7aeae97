"""
Command-line entrypoint for stars-keeper

Commands:
- sync: fetch every starred repository and upsert it into the local database
- purge: delete the local database file

Exit code is 0 on success and 1 on any failure.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from stars_keeper.config.database import StorageError
from stars_keeper.config.settings import ConfigurationError, settings
from stars_keeper.jobs.sync import run_purge, run_stars_sync
from stars_keeper.orchestrator import SyncError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stars-keeper",
        description="Keep a local SQLite snapshot of your GitHub stars",
    )
    parser.add_argument(
        "--db-path",
        type=Path,
        default=None,
        help=f"Path to the SQLite database (default: {settings.DATABASE_FILENAME} in the stars-keeper config folder)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("sync", help="Fetch all stars and update the local database")
    subparsers.add_parser("purge", help="Delete the local database")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    log_level = logging.DEBUG if args.verbose else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "purge":
        try:
            removed = run_purge(database_path=args.db_path)
        except ConfigurationError as e:
            logger.error(f"Configuration error: {e}")
            return 1
        except OSError as e:
            logger.error(f"Purge failed: {e}")
            return 1
        logger.info("Database removed" if removed else "Nothing to purge")
        return 0

    try:
        report = asyncio.run(run_stars_sync(database_path=args.db_path))
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except (SyncError, StorageError) as e:
        logger.error(f"Sync failed: {e}", exc_info=args.verbose)
        return 1

    stats = report.as_dict()
    logger.info(
        f"Sync completed: {stats['stars_saved']} stars, "
        f"{stats['repositories_saved']} repository snapshots saved from {stats['pages']} pages"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
