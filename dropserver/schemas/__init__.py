"""Pydantic schemas for API requests and responses."""

from dropserver.schemas.common import ErrorResponse, HealthResponse
from dropserver.schemas.shares import (
    ShareInfoResponse,
    UnlockRequest,
    UnlockResponse
)
from dropserver.schemas.uploads import (
    ChunkResponse,
    ShareCreatedResponse,
    UploadInitRequest,
    UploadInitResponse,
    UploadStatusResponse
)

__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "ShareInfoResponse",
    "UnlockRequest",
    "UnlockResponse",
    "ChunkResponse",
    "ShareCreatedResponse",
    "UploadInitRequest",
    "UploadInitResponse",
    "UploadStatusResponse"
]
