"""
Services for the Uploads API

Cross-check upload URLs stored in the database against the files under
the public uploads directory, and clean up either side.
"""

import json
import os
import shutil
import time
from collections.abc import Iterable, Iterator, Sequence
from pathlib import Path, PurePosixPath

from sqlalchemy import and_, column, select, table, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from api.uploads.models import (
    CleanupAction,
    CleanupCounts,
    CleanupMode,
    CleanupReport,
    DEFAULT_PLACEHOLDER_URL,
    DEFAULT_SOURCES,
    FixMissingReport,
    FixMode,
    ReconciliationCounts,
    ReferenceUpdate,
    SourceSummary,
    UploadLocation,
    UploadReport,
    UrlSource,
)
from core.logger import logger
from core.utils import parse_json_array

SECONDS_PER_DAY = 24 * 60 * 60


class SourcesUnavailableError(RuntimeError):
    """Raised when no source could be read, so nothing is known to be referenced"""


# Filesystem ----

def _posix(path: str | Path) -> str:
    return Path(path).as_posix()


def collect_files(root: str | Path, exclude: Iterable[str | Path] = ()) -> set[str]:
    """
    Collect the absolute path of every regular file under root.

    A root that does not exist yields an empty set. Directories listed in
    exclude are skipped along with everything below them.
    """
    root = Path(root).resolve()
    if not root.is_dir():
        logger.debug("Uploads directory %s does not exist", root)
        return set()

    excluded = {Path(p).resolve() for p in exclude}
    files = set()
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        dirnames[:] = [d for d in dirnames if current / d not in excluded]
        for name in filenames:
            path = current / name
            if path.is_file():
                files.add(_posix(path))
    return files


def to_abs_from_url(url: str, location: UploadLocation) -> str | None:
    """
    Map an upload URL to the absolute path of the file it points to.

    Only URLs under the upload prefix are mapped; anything else (external
    links, other static assets) returns None, as does a URL whose dot
    segments would leave the uploads directory.

    >>> loc = UploadLocation(public_dir="/srv/public")
    >>> to_abs_from_url("\\\\uploads\\\\products\\\\a.jpg", loc)
    '/srv/public/uploads/products/a.jpg'
    """
    clean = url.replace("\\", "/")
    if not clean.startswith(location.url_prefix):
        return None

    public_dir = _posix(location.public_dir.resolve())
    abs_path = os.path.normpath(os.path.join(public_dir, clean.lstrip("/")))
    abs_path = _posix(abs_path)

    uploads_dir = _posix(location.uploads_dir.resolve())
    if not abs_path.startswith(uploads_dir.rstrip("/") + "/"):
        return None
    return abs_path


def to_display_path(abs_path: str, location: UploadLocation) -> str:
    """Path relative to the public directory, e.g. uploads/products/a.jpg"""
    public_dir = PurePosixPath(_posix(location.public_dir.resolve()))
    try:
        return str(PurePosixPath(abs_path).relative_to(public_dir))
    except ValueError:
        return abs_path


# Database ----

def _source_table(src: UrlSource, extra_columns: Sequence[str] = ()):
    names = list(dict.fromkeys(
        [*extra_columns, *src.url_columns, *src.json_columns]
    ))
    return table(src.table_name, *[column(name) for name in names])


def read_source(session: Session, src: UrlSource, summary: SourceSummary) -> Iterator[str]:
    """
    Yield every URL found in one source.

    JSON array cells that cannot be parsed contribute nothing and are
    counted in summary.json_errors. Query failures propagate.
    """
    tbl = _source_table(src)
    rows = session.exec(select(*tbl.c)).mappings().all()
    summary.rows = len(rows)
    for row in rows:
        for name in src.url_columns:
            value = row[name]
            if value:
                yield str(value)
        for name in src.json_columns:
            parsed = parse_json_array(row[name])
            if not parsed.ok:
                summary.json_errors += 1
                logger.debug("%s.%s: %s", src.table_name, name, parsed.error)
                continue
            yield from parsed.items


def collect_referenced_urls(
    session: Session,
    sources: Iterable[UrlSource] = DEFAULT_SOURCES,
) -> tuple[set[str], list[SourceSummary]]:
    """
    Collect the raw URLs referenced by all sources.

    Each source is read on its own. A failing source (e.g. a table that
    does not exist in this database) is logged and recorded in its summary,
    contributes no URLs, and does not stop the others.
    """
    urls: set[str] = set()
    summaries = []
    for src in sources:
        summary = SourceSummary(name=src.name, table_name=src.table_name)
        try:
            found = list(read_source(session, src, summary))
        except SQLAlchemyError as e:
            session.rollback()
            summary.rows = summary.json_errors = 0
            summary.error = str(e).splitlines()[0]
            logger.warning("Skipping source %s: %s", src.name, summary.error)
            found = []
        summary.url_count = len(found)
        urls.update(found)
        summaries.append(summary)
    return urls, summaries


# Reconciliation ----

def reconcile(referenced: set[str], files: set[str]) -> tuple[list[str], list[str], list[str]]:
    """
    Split referenced paths and files into (missing, orphans, matched).
    All three lists are sorted.
    """
    matched = referenced & files
    missing = referenced - files
    orphans = files - referenced
    return sorted(missing), sorted(orphans), sorted(matched)


def _referenced_paths(urls: Iterable[str], location: UploadLocation) -> tuple[set[str], int]:
    """Normalized paths of the upload URLs, and how many URLs were not uploads"""
    paths = set()
    excluded = 0
    for url in urls:
        path = to_abs_from_url(url, location)
        if path is None:
            excluded += 1
        else:
            paths.add(path)
    return paths, excluded


def verify_uploads(
    session: Session,
    location: UploadLocation,
    sources: Iterable[UrlSource] = DEFAULT_SOURCES,
    preview_limit: int = 50,
) -> UploadReport:
    """
    Report files referenced in the database but missing on disk, and files
    on disk that nothing references. Read-only.
    """
    urls, summaries = collect_referenced_urls(session, sources)
    referenced, excluded = _referenced_paths(urls, location)
    files = collect_files(location.uploads_dir)
    missing, orphans, matched = reconcile(referenced, files)

    logger.info(
        "Verified uploads: %d referenced, %d on disk, %d missing, %d orphaned",
        len(referenced), len(files), len(missing), len(orphans)
    )

    return UploadReport(
        counts=ReconciliationCounts(
            raw_url_count=len(urls),
            excluded_url_count=excluded,
            referenced_url_count=len(referenced),
            filesystem_file_count=len(files),
            matched_count=len(matched),
            missing_count=len(missing),
            orphan_count=len(orphans),
        ),
        missing=[to_display_path(p, location) for p in missing],
        orphans_preview=[
            to_display_path(p, location) for p in orphans[:max(preview_limit, 0)]
        ],
        sources=summaries,
    )


# Orphan cleanup ----

def _remove_orphan(
    path: str,
    location: UploadLocation,
    mode: CleanupMode,
    dry_run: bool,
) -> CleanupAction:
    if mode == CleanupMode.DELETE:
        action = CleanupAction(action=mode, path=to_display_path(path, location))
        if dry_run:
            return action
        try:
            Path(path).unlink()
        except OSError as e:
            logger.error("Failed to delete %s: %s", path, e)
            action.ok = False
            action.error = str(e)
        return action

    uploads_dir = location.uploads_dir.resolve()
    dest = location.quarantine_dir.resolve() / Path(path).relative_to(uploads_dir)
    action = CleanupAction(
        action=mode,
        path=to_display_path(path, location),
        destination=to_display_path(_posix(dest), location),
    )
    if dry_run:
        return action
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(path, dest)
    except OSError as e:
        logger.error("Failed to quarantine %s: %s", path, e)
        action.ok = False
        action.error = str(e)
    return action


def cleanup_orphans(
    session: Session,
    location: UploadLocation,
    mode: CleanupMode = CleanupMode.QUARANTINE,
    dry_run: bool = False,
    min_age_days: int = 7,
    sources: Iterable[UrlSource] = DEFAULT_SOURCES,
    preview_limit: int = 50,
    now: float | None = None,
) -> CleanupReport:
    """
    Quarantine or delete orphaned files older than min_age_days.

    Files already in the quarantine directory are never touched. In a dry
    run the actions are reported but nothing on disk changes.

    Raises:
        SourcesUnavailableError: If every source failed and this is not a
            dry run
    """
    urls, summaries = collect_referenced_urls(session, sources)
    if not dry_run and summaries and all(s.error for s in summaries):
        raise SourcesUnavailableError(
            "No source could be read, refusing to remove files: "
            + "; ".join(f"{s.name}: {s.error}" for s in summaries)
        )
    referenced, _ = _referenced_paths(urls, location)
    files = collect_files(location.uploads_dir, exclude=[location.quarantine_dir])

    cutoff = (time.time() if now is None else now) - min_age_days * SECONDS_PER_DAY
    candidates = []
    for path in sorted(files - referenced):
        try:
            mtime = os.stat(path).st_mtime
        except OSError as e:
            logger.warning("Cannot stat %s: %s", path, e)
            continue
        if mtime < cutoff:
            candidates.append(path)

    actions = [_remove_orphan(p, location, mode, dry_run) for p in candidates]
    succeeded = sum(1 for a in actions if a.ok)

    logger.info(
        "Cleanup (%s%s): %d orphan candidates, %d succeeded, %d failed",
        mode.value, ", dry run" if dry_run else "",
        len(candidates), succeeded, len(actions) - succeeded
    )

    return CleanupReport(
        mode=mode,
        dry_run=dry_run,
        min_age_days=min_age_days,
        counts=CleanupCounts(
            total_files=len(files),
            referenced_path_count=len(referenced),
            orphan_candidates=len(candidates),
            succeeded=succeeded,
            failed=len(actions) - succeeded,
        ),
        actions_preview=actions[:max(preview_limit, 0)],
        sources=summaries,
    )


# Missing reference repair ----

def _is_missing(url: str, location: UploadLocation, files: set[str]) -> bool:
    path = to_abs_from_url(url, location)
    return path is not None and path not in files


def _repair_row(
    row,
    src: UrlSource,
    location: UploadLocation,
    files: set[str],
    replacement: str | None,
    summary: SourceSummary,
) -> dict[str, str | None]:
    """New values for the columns of one row that point at missing files"""
    changes = {}
    for name in src.url_columns:
        value = row[name]
        if not isinstance(value, str) or not value:
            continue
        summary.url_count += 1
        if value != replacement and _is_missing(value, location, files):
            changes[name] = replacement

    for name in src.json_columns:
        parsed = parse_json_array(row[name])
        if not parsed.ok:
            summary.json_errors += 1
            continue
        summary.url_count += len(parsed.items)
        replaced = False
        items = []
        for element in parsed.elements:
            if (
                isinstance(element, str) and element
                and element != replacement
                and _is_missing(element, location, files)
            ):
                replaced = True
                if replacement:
                    items.append(replacement)
            else:
                items.append(element)
        if replaced:
            changes[name] = json.dumps(items, separators=(",", ":"))
    return changes


def _repair_source(
    session: Session,
    src: UrlSource,
    location: UploadLocation,
    files: set[str],
    replacement: str | None,
    dry_run: bool,
    summary: SourceSummary,
) -> list[ReferenceUpdate]:
    tbl = _source_table(src, extra_columns=src.key_columns)
    rows = session.exec(select(*tbl.c)).mappings().all()
    summary.rows = len(rows)

    updates = []
    for row in rows:
        changes = _repair_row(row, src, location, files, replacement, summary)
        if not changes:
            continue

        keys = {k: row[k] for k in src.key_columns}
        updates.append(ReferenceUpdate(
            source=src.name,
            table_name=src.table_name,
            keys=keys,
            columns=sorted(changes),
        ))
        if dry_run:
            continue

        # Guard on the old values so rows edited meanwhile are left alone
        guards = [tbl.c[k] == v for k, v in keys.items()]
        guards += [tbl.c[name] == row[name] for name in changes]
        session.exec(update(tbl).where(and_(*guards)).values(**changes))

    if not dry_run:
        session.commit()
    return updates


def fix_missing_references(
    session: Session,
    location: UploadLocation,
    mode: FixMode = FixMode.NULL,
    placeholder_url: str = DEFAULT_PLACEHOLDER_URL,
    dry_run: bool = False,
    sources: Iterable[UrlSource] = DEFAULT_SOURCES,
) -> FixMissingReport:
    """
    Point references to missing upload files at NULL or a placeholder.

    Scalar columns are set to the replacement; JSON arrays have missing
    elements dropped (null mode) or replaced (placeholder mode). URLs
    outside the upload prefix and malformed arrays are never changed.
    A failing source is rolled back and the run moves on.
    """
    replacement = placeholder_url if mode == FixMode.PLACEHOLDER else None
    files = collect_files(location.uploads_dir)

    updates = []
    summaries = []
    for src in sources:
        summary = SourceSummary(name=src.name, table_name=src.table_name)
        summaries.append(summary)
        if not src.key_columns:
            logger.info("Source %s has no key columns, not repairing", src.name)
            continue
        try:
            found = _repair_source(
                session, src, location, files, replacement, dry_run, summary
            )
        except SQLAlchemyError as e:
            session.rollback()
            summary.error = str(e).splitlines()[0]
            logger.warning("Skipping source %s: %s", src.name, summary.error)
            continue
        updates.extend(found)

    logger.info(
        "Fix missing (%s%s): %d rows %s",
        mode.value, ", dry run" if dry_run else "",
        len(updates), "to update" if dry_run else "updated"
    )

    return FixMissingReport(
        mode=mode,
        placeholder_url=replacement,
        dry_run=dry_run,
        updated=len(updates),
        updates=updates,
        sources=summaries,
    )
