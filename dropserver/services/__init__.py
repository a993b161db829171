"""Service layer for business logic."""

from dropserver.services.share_service import ShareService
from dropserver.services.upload_service import UploadService

__all__ = [
    "ShareService",
    "UploadService",
]
