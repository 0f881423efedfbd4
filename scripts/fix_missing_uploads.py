#!/usr/bin/env python
"""
Fix missing upload references by setting them to NULL or a placeholder.

Every database reference under the uploads prefix whose file does not
exist on disk is rewritten. JSON arrays of URLs lose (or have replaced)
only their missing entries.

Usage:
    PYTHONPATH=.
    python scripts/fix_missing_uploads.py --dry-run
    python scripts/fix_missing_uploads.py --mode placeholder \
        --placeholder /uploads/products/images/placeholder.png
"""

import argparse
import sys

from api.uploads.models import DEFAULT_PLACEHOLDER_URL, FixMode
from api.uploads.services import fix_missing_references
from core.db import DatabaseUnavailableError, session_scope
from core.logger import logger
from scripts.upload_args import (
    add_upload_arguments,
    location_from_args,
    sources_from_args,
)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Rewrite database references to upload files that do not exist",
    )
    add_upload_arguments(parser)
    parser.add_argument(
        "--mode",
        choices=[m.value for m in FixMode],
        default=FixMode.NULL.value,
        help="null (clear the reference) or placeholder (default: null)",
    )
    parser.add_argument(
        "--placeholder",
        default=DEFAULT_PLACEHOLDER_URL,
        help=f"URL used in placeholder mode (default: {DEFAULT_PLACEHOLDER_URL})",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be updated without writing to the database",
    )
    args = parser.parse_args(argv)

    location = location_from_args(args)
    sources = sources_from_args(args)

    try:
        with session_scope() as session:
            report = fix_missing_references(
                session,
                location,
                mode=FixMode(args.mode),
                placeholder_url=args.placeholder,
                dry_run=args.dry_run,
                sources=sources,
            )
    except DatabaseUnavailableError as e:
        logger.error(f"Failed to create database session: {e}")
        sys.exit(1)

    print(report.model_dump_json(indent=2))

    if args.dry_run:
        logger.info("*** DRY RUN MODE - No rows were updated ***")


if __name__ == "__main__":
    main()
