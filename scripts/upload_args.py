"""
Command line options shared by the upload maintenance scripts.
"""

import argparse
import json
import sys
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from api.uploads.models import DEFAULT_SOURCES, UploadLocation, UrlSource
from core.config import get_settings
from core.logger import logger


def add_upload_arguments(parser: argparse.ArgumentParser) -> None:
    """Add --public-dir, --prefix, --sources and --preview-limit"""
    settings = get_settings()
    parser.add_argument(
        "--public-dir",
        type=Path,
        default=settings.PUBLIC_DIR,
        help=f"Directory served as the site root (default: {settings.PUBLIC_DIR})",
    )
    parser.add_argument(
        "--prefix",
        default=settings.UPLOADS_URL_PREFIX,
        help=f"URL prefix of uploaded files (default: {settings.UPLOADS_URL_PREFIX})",
    )
    parser.add_argument(
        "--sources",
        help="JSON file listing the tables/columns to read instead of the defaults",
    )
    parser.add_argument(
        "--preview-limit",
        type=int,
        default=settings.ORPHAN_PREVIEW_LIMIT,
        help="Maximum number of entries in preview lists",
    )


def location_from_args(args: argparse.Namespace) -> UploadLocation:
    return UploadLocation(public_dir=args.public_dir, url_prefix=args.prefix)


def load_sources(sources_file: str) -> list[UrlSource]:
    """Load a list of sources from a JSON file."""
    try:
        with open(sources_file, "r", encoding="utf-8") as f:
            data = json.load(f)
        return TypeAdapter(list[UrlSource]).validate_python(data)
    except FileNotFoundError:
        logger.error(f"Sources file not found: {sources_file}")
        sys.exit(1)
    except OSError as e:
        logger.error(f"Cannot read sources file {sources_file}: {e}")
        sys.exit(1)
    except UnicodeDecodeError as e:
        logger.error(f"Sources file {sources_file} is not UTF-8: {e}")
        sys.exit(1)
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in sources file: {e}")
        sys.exit(1)
    except ValidationError as e:
        logger.error(f"Invalid sources file {sources_file}: {e}")
        sys.exit(1)


def sources_from_args(args: argparse.Namespace) -> list[UrlSource]:
    if args.sources:
        return load_sources(args.sources)
    return DEFAULT_SOURCES


def create_sample_sources(sources_file: str = "upload_sources.json") -> None:
    """Write the default sources to a JSON file as a starting point."""
    with open(sources_file, "w") as f:
        json.dump([s.model_dump() for s in DEFAULT_SOURCES], f, indent=2)

    logger.info(f"Sample sources file created: {sources_file}")
    logger.info("Edit it to match your schema and pass it with --sources")
