#!/usr/bin/env python
"""
Cleanup orphan uploads: compare database references to the files under
<public dir>/uploads and quarantine or delete the files nothing references.

Quarantined files are moved to uploads/_quarantine/, keeping their
relative path. Only files older than --days are touched.

Usage:
    PYTHONPATH=.
    python scripts/cleanup_uploads.py --mode quarantine --dry-run
    python scripts/cleanup_uploads.py --mode delete --days 30
"""

import argparse
import sys

from api.uploads.models import CleanupMode
from api.uploads.services import SourcesUnavailableError, cleanup_orphans
from core.db import DatabaseUnavailableError, session_scope
from core.logger import logger
from scripts.upload_args import (
    add_upload_arguments,
    location_from_args,
    sources_from_args,
)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Quarantine or delete upload files that nothing references",
    )
    add_upload_arguments(parser)
    parser.add_argument(
        "--mode",
        choices=[m.value for m in CleanupMode],
        default=CleanupMode.QUARANTINE.value,
        help="quarantine (move aside) or delete (default: quarantine)",
    )
    parser.add_argument(
        "--days",
        type=int,
        default=7,
        help="Only affect files older than this many days (default: 7)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without changing any files",
    )
    args = parser.parse_args(argv)

    if args.days < 0:
        parser.error("--days must not be negative")

    location = location_from_args(args)
    sources = sources_from_args(args)

    try:
        with session_scope() as session:
            report = cleanup_orphans(
                session,
                location,
                mode=CleanupMode(args.mode),
                dry_run=args.dry_run,
                min_age_days=args.days,
                sources=sources,
                preview_limit=args.preview_limit,
            )
    except DatabaseUnavailableError as e:
        logger.error(f"Failed to create database session: {e}")
        sys.exit(1)
    except SourcesUnavailableError as e:
        logger.error(f"Cleanup aborted: {e}")
        sys.exit(1)

    print(report.model_dump_json(indent=2))

    if args.dry_run:
        logger.info("*** DRY RUN MODE - No files were changed ***")


if __name__ == "__main__":
    main()
