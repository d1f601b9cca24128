"""Pydantic schemas for request/response validation."""

from mediahub.schemas.upload import (
    UploadRequest,
    UploadTicketResponse,
    UploadResponse,
)
from mediahub.schemas.user import (
    ExternalProfile,
    UserResponse,
)

__all__ = [
    "UploadRequest",
    "UploadTicketResponse",
    "UploadResponse",
    "ExternalProfile",
    "UserResponse",
]
