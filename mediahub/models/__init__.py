"""Database models."""

from mediahub.models.user import User, AccountTier
from mediahub.models.session import UserSession, SessionState
from mediahub.models.upload import FileUpload, UploadStatus

__all__ = ["User", "AccountTier", "UserSession", "SessionState", "FileUpload", "UploadStatus"]
