"""File upload intent model."""

from enum import Enum as PyEnum

from sqlalchemy import Column, Integer, String, BigInteger, Text, Enum, ForeignKey
from sqlalchemy.orm import backref, relationship

from mediahub.db.base import Base, UTCDateTime, utcnow


class UploadStatus(str, PyEnum):
    """Enumeration of upload intent statuses."""

    PENDING = "PENDING"
    UPLOADED = "UPLOADED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self]

    def can_transition_to(self, target: "UploadStatus") -> bool:
        return target in ALLOWED_TRANSITIONS[self]


ALLOWED_TRANSITIONS: dict[UploadStatus, frozenset[UploadStatus]] = {
    UploadStatus.PENDING: frozenset({UploadStatus.UPLOADED}),
    UploadStatus.UPLOADED: frozenset({UploadStatus.PROCESSING}),
    UploadStatus.PROCESSING: frozenset({UploadStatus.COMPLETED, UploadStatus.FAILED}),
    UploadStatus.COMPLETED: frozenset(),
    UploadStatus.FAILED: frozenset(),
}


class FileUpload(Base):
    """
    Upload intent.

    Records the promise of a client-side transfer to object storage and its
    eventual confirmation. The bytes live in the bucket under
    ``storage_key``; rows are never deleted, only moved to a terminal status.
    """

    __tablename__ = "file_uploads"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    original_name = Column(String(1024), nullable=False)
    storage_key = Column(String(1024), nullable=False, unique=True)
    content_type = Column(String(255), nullable=False)
    size_bytes = Column(BigInteger, nullable=False)

    status = Column(
        Enum(UploadStatus, name="upload_status"),
        nullable=False,
        default=UploadStatus.PENDING,
        index=True,
    )
    error_message = Column(Text, nullable=True)

    created_at = Column(UTCDateTime(), nullable=False, default=utcnow, index=True)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    user = relationship("User", backref=backref("uploads", passive_deletes=True))

    def __repr__(self) -> str:
        return f"<FileUpload(id={self.id}, key={self.storage_key}, status={self.status})>"
