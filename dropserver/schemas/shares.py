"""Pydantic schemas for share endpoints."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ShareInfoResponse(BaseModel):
    """Response model for share metadata."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    file_name: str = Field(alias="fileName")
    file_size: int = Field(alias="fileSize")
    expires_at: Optional[str] = Field(default=None, alias="expiresAt")
    password_required: bool = Field(alias="passwordRequired")


class UnlockRequest(BaseModel):
    """Request model for unlocking a password-protected share."""
    password: str


class UnlockResponse(BaseModel):
    """Response model for a successful unlock."""
    success: bool
