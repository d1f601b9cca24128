"""Upload service: two-phase handoff between the intent ledger and object storage."""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from mediahub.config import Settings
from mediahub.db.base import utcnow
from mediahub.models.upload import FileUpload, UploadStatus
from mediahub.services.base import BaseService, Clock
from mediahub.services.exceptions import (
    AuthenticationError,
    AuthorizationError,
    FileTooLargeError,
    InvalidStatusTransitionError,
    UploadNotFoundError,
    ValidationError,
)
from mediahub.storage.blob_storage import BlobStorage, S3Storage

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def sanitize_file_name(file_name: str) -> str:
    """Replace every character outside ``[A-Za-z0-9._-]`` with an underscore."""
    return _UNSAFE_KEY_CHARS.sub("_", file_name)


@dataclass(frozen=True)
class UploadTicket:
    """What the client needs to perform and later confirm an upload."""

    upload_url: str
    intent_id: int
    key: str
    expires_in: int


class UploadService(BaseService):
    """
    Service coordinating client uploads to object storage.

    ``request_upload`` validates, then signs, then records the intent, so a
    rejected request never reaches storage or the database and a signing
    failure never leaves a row behind. If the insert fails after signing,
    the issued URL is simply left to expire.

    ``confirm_upload`` trusts the client's word that the transfer happened;
    the reconciliation sweep is what compares the ledger with the bucket.
    """

    def __init__(
        self,
        db: Session,
        blob_storage: BlobStorage,
        settings: Settings,
        clock: Clock = utcnow,
    ):
        """
        Initialize the upload service.

        Args:
            db: SQLAlchemy database session
            blob_storage: Capability issuer for S3/compatible storage
            settings: Application settings
            clock: Source of the current UTC time
        """
        super().__init__(db, settings, clock)
        self.blob_storage = blob_storage

    def build_storage_key(self, user_id: str, file_name: str, at: datetime) -> str:
        """Derive a per-user, time-ordered storage key for a file requested at ``at``."""
        timestamp_us = (at - _EPOCH) // timedelta(microseconds=1)
        return S3Storage.build_upload_key(
            self.settings.UPLOAD_KEY_PREFIX,
            user_id,
            timestamp_us,
            sanitize_file_name(file_name),
        )

    def request_upload(
        self,
        user_id: Optional[str],
        file_name: str,
        content_type: str,
        size: int,
    ) -> UploadTicket:
        """
        Record an upload intent and issue a presigned PUT URL for it.

        Args:
            user_id: Authenticated owner user ID
            file_name: Original file name
            content_type: Declared MIME type
            size: Declared size in bytes

        Returns:
            UploadTicket with the URL, intent ID and storage key

        Raises:
            AuthenticationError: If no user ID is supplied
            ValidationError: If a field is missing or out of bounds
            CapabilityIssuerError: If storage could not sign the URL
            PersistenceError: If the intent could not be recorded
        """
        if not user_id:
            raise AuthenticationError("Unauthorized")
        self._validate_request(file_name, content_type, size)

        now = self.clock()
        key = self.build_storage_key(user_id, file_name, now)
        signed = self.blob_storage.sign_upload(key, content_type, size)

        upload = FileUpload(
            user_id=user_id,
            original_name=file_name,
            storage_key=key,
            content_type=content_type,
            size_bytes=size,
            status=UploadStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

        with self._persistence("record upload intent"):
            self.db.add(upload)
            self.db.commit()
            self.db.refresh(upload)

        logger.info(f"Created upload intent {upload.id} for user {user_id} at {key}")
        return UploadTicket(
            upload_url=signed.url,
            intent_id=upload.id,
            key=key,
            expires_in=signed.expires_in,
        )

    def confirm_upload(self, user_id: Optional[str], intent_id: int) -> FileUpload:
        """
        Mark an intent as uploaded on the client's word.

        Confirming an intent that is already UPLOADED is a no-op, so clients
        may retry.

        Args:
            user_id: Authenticated caller user ID
            intent_id: Upload intent ID

        Returns:
            The updated FileUpload

        Raises:
            AuthenticationError: If no user ID is supplied
            UploadNotFoundError: If the intent doesn't exist
            AuthorizationError: If the intent belongs to another user
            InvalidStatusTransitionError: If the intent is past UPLOADED
        """
        if not user_id:
            raise AuthenticationError("Unauthorized")

        upload = self._get_by_id(intent_id)

        if upload.user_id != user_id:
            logger.warning(f"User {user_id} attempted to confirm upload {intent_id} owned by another user")
            raise AuthorizationError("You do not have permission to confirm this upload")

        if upload.status == UploadStatus.UPLOADED:
            return upload

        if not upload.status.can_transition_to(UploadStatus.UPLOADED):
            raise InvalidStatusTransitionError(intent_id, upload.status.value, UploadStatus.UPLOADED.value)

        expected = upload.status
        applied = self._compare_and_set(
            upload,
            expected,
            "confirm upload",
            FileUpload.user_id == user_id,
            status=UploadStatus.UPLOADED,
            updated_at=self.clock(),
        )

        if not applied:
            # Lost a race; a concurrent confirm is fine, anything further is not.
            if upload.status == UploadStatus.UPLOADED:
                return upload
            raise InvalidStatusTransitionError(intent_id, upload.status.value, UploadStatus.UPLOADED.value)

        logger.info(f"Upload {intent_id} confirmed by user {user_id}")
        return upload

    def get_upload(self, user_id: str, intent_id: int) -> FileUpload:
        """
        Get an upload intent by ID (with ownership verification).

        Raises:
            UploadNotFoundError: If the intent doesn't exist or user doesn't own it
        """
        upload = self._get_by_id(intent_id)
        if upload.user_id != user_id:
            raise UploadNotFoundError(intent_id)
        return upload

    def list_uploads(
        self,
        user_id: str,
        status: Optional[UploadStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[FileUpload]:
        """
        List upload intents for a user, newest first.

        Args:
            user_id: Owner user ID
            status: Optional status filter
            limit: Maximum number of results
            offset: Pagination offset
        """
        query = select(FileUpload).where(FileUpload.user_id == user_id)

        if status:
            query = query.where(FileUpload.status == status)

        query = query.order_by(FileUpload.created_at.desc(), FileUpload.id.desc()).offset(offset).limit(limit)

        with self._persistence("list uploads"):
            return list(self.db.scalars(query).all())

    def update_status(
        self,
        intent_id: int,
        status: UploadStatus,
        error_message: Optional[str] = None,
    ) -> FileUpload:
        """
        Move an intent along the processing pipeline.

        Used by downstream processing, never by end users.

        Raises:
            UploadNotFoundError: If the intent doesn't exist
            InvalidStatusTransitionError: If the transition is not allowed
        """
        upload = self._get_by_id(intent_id)
        expected = upload.status

        if not expected.can_transition_to(status):
            raise InvalidStatusTransitionError(intent_id, expected.value, status.value)

        values = {"status": status, "updated_at": self.clock()}
        if error_message:
            values["error_message"] = error_message

        if not self._compare_and_set(upload, expected, "update upload status", **values):
            raise InvalidStatusTransitionError(intent_id, upload.status.value, status.value)

        logger.info(f"Updated upload {intent_id} status to {status.value}")
        return upload

    def list_stale_pending(self, older_than: datetime, limit: Optional[int] = None) -> list[FileUpload]:
        """
        List PENDING intents created before ``older_than``. Read-only.

        Args:
            older_than: Cut-off creation time
            limit: Optional maximum number of results
        """
        query = (
            select(FileUpload)
            .where(
                FileUpload.status == UploadStatus.PENDING,
                FileUpload.created_at < older_than,
            )
            .order_by(FileUpload.created_at)
        )
        if limit is not None:
            query = query.limit(limit)

        with self._persistence("list stale uploads"):
            return list(self.db.scalars(query).all())

    def _compare_and_set(self, upload: FileUpload, expected: UploadStatus, action: str, *criteria, **values) -> bool:
        """
        Apply ``values`` only if the row still has status ``expected``.

        A single conditional UPDATE, so a caller holding a stale read can
        never move an intent backwards. ``upload`` is refreshed either way.

        Returns:
            True if this call performed the change
        """
        with self._persistence(action):
            result = self.db.execute(
                update(FileUpload)
                .where(FileUpload.id == upload.id, FileUpload.status == expected, *criteria)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
            self.db.refresh(upload)

        return result.rowcount == 1

    def _get_by_id(self, intent_id: int) -> FileUpload:
        with self._persistence("look up upload"):
            upload = self.db.get(FileUpload, intent_id)

        if upload is None:
            raise UploadNotFoundError(intent_id)
        return upload

    def _validate_request(self, file_name: str, content_type: str, size: int) -> None:
        if not file_name or not content_type or not size:
            raise ValidationError("Missing required fields: file_name, content_type, size")

        if size < 0:
            raise ValidationError("File size must be positive", field="size")

        if size > self.settings.MAX_FILE_SIZE:
            raise FileTooLargeError(size, self.settings.MAX_FILE_SIZE)

        allowed = self.settings.ALLOWED_CONTENT_TYPE_PREFIXES
        if allowed and not any(content_type.startswith(prefix) for prefix in allowed):
            raise ValidationError(f"Unsupported content type '{content_type}'", field="content_type")
