"""
Uploads dependencies for dependency injection
"""

from typing import Annotated
from fastapi import Depends

from core.config import get_settings
from api.uploads.models import UploadLocation


def get_upload_location() -> UploadLocation:
    """
    Dependency that resolves where uploads live from the settings.
    Tests override this to point at a temporary directory.
    """
    settings = get_settings()
    return UploadLocation(
        public_dir=settings.PUBLIC_DIR,
        url_prefix=settings.UPLOADS_URL_PREFIX,
    )


def get_preview_limit() -> int:
    return get_settings().ORPHAN_PREVIEW_LIMIT


# Type aliases for clean usage in route signatures
UploadLocationDep = Annotated[UploadLocation, Depends(get_upload_location)]
PreviewLimitDep = Annotated[int, Depends(get_preview_limit)]
