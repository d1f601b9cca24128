"""Pydantic schemas for upload endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict

from mediahub.models.upload import UploadStatus


class UploadRequest(BaseModel):
    """Schema for requesting a presigned upload URL."""

    file_name: str = Field(..., min_length=1, max_length=1024, description="Original file name")
    content_type: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="MIME type the client will send",
        examples=["image/jpeg", "video/mp4"],
    )
    size: int = Field(..., gt=0, description="Exact number of bytes the client will send")


class UploadTicketResponse(BaseModel):
    """Schema for the response to an upload request."""

    upload_url: str = Field(..., description="Presigned PUT URL")
    intent_id: int = Field(..., description="Upload intent identifier, needed to confirm")
    key: str = Field(..., description="Storage key the file will be written to")
    expires_in: int = Field(..., description="Seconds until the upload URL expires")


class UploadResponse(BaseModel):
    """Schema for an upload intent."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Upload intent identifier")
    user_id: str = Field(..., description="Owner user ID")
    original_name: str = Field(..., description="Original file name")
    storage_key: str = Field(..., description="Storage key")
    content_type: str = Field(..., description="Declared MIME type")
    size_bytes: int = Field(..., description="Declared size in bytes")
    status: UploadStatus = Field(..., description="Current status")
    error_message: Optional[str] = Field(default=None, description="Failure detail, if any")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last status change")
