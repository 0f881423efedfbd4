"""
Routes/endpoints for the Uploads API

HTTP   URI                          Action
----   ---                          ------
GET    /api/v1/uploads/verify       Report missing and orphaned upload files
POST   /api/v1/uploads/cleanup      Quarantine or delete orphaned files
POST   /api/v1/uploads/fix-missing  Null out or replace references to missing files
"""

from fastapi import APIRouter, HTTPException, status
from core.deps import SessionDep
from api.uploads.deps import PreviewLimitDep, UploadLocationDep
from api.uploads.models import (
    CleanupReport,
    CleanupRequest,
    FixMissingReport,
    FixMissingRequest,
    UploadReport,
)
from api.uploads import services

router = APIRouter(prefix="/uploads", tags=["Upload Endpoints"])


@router.get(
    "/verify",
    response_model=UploadReport,
    status_code=status.HTTP_200_OK,
    tags=["Upload Endpoints"],
)
def verify_uploads(
    session: SessionDep,
    location: UploadLocationDep,
    preview_limit: PreviewLimitDep,
) -> UploadReport:
    """
    Cross-check upload URLs stored in the database against the files on disk.
    Nothing is modified.
    """
    return services.verify_uploads(
        session=session,
        location=location,
        preview_limit=preview_limit,
    )


@router.post(
    "/cleanup",
    response_model=CleanupReport,
    status_code=status.HTTP_200_OK,
    tags=["Upload Endpoints"],
)
def cleanup_uploads(
    session: SessionDep,
    location: UploadLocationDep,
    preview_limit: PreviewLimitDep,
    cleanup_request: CleanupRequest = CleanupRequest(),
) -> CleanupReport:
    """
    Quarantine or delete orphaned files older than min_age_days.
    Defaults to a dry run; send dry_run=false to act.
    """
    try:
        return services.cleanup_orphans(
            session=session,
            location=location,
            mode=cleanup_request.mode,
            dry_run=cleanup_request.dry_run,
            min_age_days=cleanup_request.min_age_days,
            preview_limit=preview_limit,
        )
    except services.SourcesUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        ) from e


@router.post(
    "/fix-missing",
    response_model=FixMissingReport,
    status_code=status.HTTP_200_OK,
    tags=["Upload Endpoints"],
)
def fix_missing_uploads(
    session: SessionDep,
    location: UploadLocationDep,
    fix_request: FixMissingRequest = FixMissingRequest(),
) -> FixMissingReport:
    """
    Set references to missing upload files to NULL or to a placeholder URL.
    Defaults to a dry run; send dry_run=false to write.
    """
    return services.fix_missing_references(
        session=session,
        location=location,
        mode=fix_request.mode,
        placeholder_url=fix_request.placeholder_url,
        dry_run=fix_request.dry_run,
    )
