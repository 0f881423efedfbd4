#!/usr/bin/env python
"""
Verify uploads: cross-check upload URLs stored in the database with the
files under <public dir>/uploads.

Reports missing files (referenced in the database but not on disk) and
orphans (files on disk not referenced in the database) as JSON on stdout.
Nothing is modified.

Usage:
    PYTHONPATH=.
    python scripts/verify_uploads.py
    python scripts/verify_uploads.py --public-dir backend/public
    python scripts/verify_uploads.py --sources upload_sources.json
    python scripts/verify_uploads.py --create-sources
"""

import argparse
import sys

from api.uploads.services import verify_uploads
from core.db import DatabaseUnavailableError, session_scope
from core.logger import logger
from scripts.upload_args import (
    add_upload_arguments,
    create_sample_sources,
    location_from_args,
    sources_from_args,
)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Report missing and orphaned upload files",
    )
    add_upload_arguments(parser)
    parser.add_argument(
        "--create-sources",
        action="store_true",
        help="Write the default sources to upload_sources.json and exit",
    )
    args = parser.parse_args(argv)

    if args.create_sources:
        create_sample_sources()
        return

    location = location_from_args(args)
    sources = sources_from_args(args)

    try:
        with session_scope() as session:
            report = verify_uploads(
                session,
                location,
                sources=sources,
                preview_limit=args.preview_limit,
            )
    except DatabaseUnavailableError as e:
        logger.error(f"Failed to create database session: {e}")
        sys.exit(1)

    print(report.model_dump_json(indent=2))


if __name__ == "__main__":
    main()
