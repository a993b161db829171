"""Pydantic schemas for upload endpoints."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class UploadInitRequest(BaseModel):
    """Request model for starting a chunked upload."""
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(alias="fileName")
    file_size: int = Field(alias="fileSize")
    password: Optional[str] = None
    expires_in: Optional[str] = Field(default=None, alias="expiresIn")
    content_type: Optional[str] = Field(default=None, alias="contentType")


class UploadInitResponse(BaseModel):
    """Response model for a started chunked upload."""
    model_config = ConfigDict(populate_by_name=True)

    upload_id: str = Field(alias="uploadId")
    chunk_size: int = Field(alias="chunkSize")
    total_chunks: int = Field(alias="totalChunks")


class ChunkResponse(BaseModel):
    """Response model for a stored chunk."""
    received: int


class UploadStatusResponse(BaseModel):
    """Response model for upload session status."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    file_name: str = Field(alias="fileName")
    file_size: int = Field(alias="fileSize")
    chunk_size: int = Field(alias="chunkSize")
    total_chunks: int = Field(alias="totalChunks")
    received: int
    missing: List[int]
    last_activity: datetime = Field(alias="lastActivity")


class ShareCreatedResponse(BaseModel):
    """Response model for a completed upload."""
    id: str
    url: str
