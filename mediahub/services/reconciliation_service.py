"""Reconciliation sweep: cross-check stale pending intents against object storage."""

import logging
from dataclasses import dataclass, field
from datetime import timedelta

from sqlalchemy.orm import Session

from mediahub.config import Settings
from mediahub.db.base import utcnow
from mediahub.services.base import Clock
from mediahub.services.upload_service import UploadService
from mediahub.storage.blob_storage import BlobStorage

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationReport:
    """Result of one sweep."""

    checked: int = 0
    present: list[int] = field(default_factory=list)
    missing: list[int] = field(default_factory=list)


class ReconciliationService:
    """
    Periodic, read-only sweep over upload intents stuck in PENDING.

    An intent is stale once it is older than ``UPLOAD_STALE_AFTER_MINUTES``.
    Stale intents whose key exists in the bucket were uploaded but never
    confirmed; those whose key is missing were abandoned. Neither case is
    written back.
    """

    def __init__(
        self,
        db: Session,
        blob_storage: BlobStorage,
        settings: Settings,
        clock: Clock = utcnow,
    ):
        self.blob_storage = blob_storage
        self.settings = settings
        self.clock = clock
        self.uploads = UploadService(db, blob_storage, settings, clock)

    def run(self) -> ReconciliationReport:
        logger.info("[sync-uploads] Starting sync job")

        cutoff = self.clock() - timedelta(minutes=self.settings.UPLOAD_STALE_AFTER_MINUTES)
        pending = self.uploads.list_stale_pending(older_than=cutoff)
        logger.info(f"[sync-uploads] Found {len(pending)} stale PENDING upload(s)")

        report = ReconciliationReport(checked=len(pending))
        if not pending:
            return report

        keys = set(self.blob_storage.list_keys(f"{self.settings.UPLOAD_KEY_PREFIX}/"))
        logger.info(f"[sync-uploads] Found {len(keys)} object(s) in storage")

        for upload in pending:
            if upload.storage_key in keys:
                report.present.append(upload.id)
                logger.info(f"[sync-uploads] Upload {upload.id}: {upload.storage_key} EXISTS but was never confirmed")
            else:
                report.missing.append(upload.id)
                logger.info(f"[sync-uploads] Upload {upload.id}: {upload.storage_key} MISSING from storage")

        logger.info(
            f"[sync-uploads] Sync job completed: {len(report.present)} unconfirmed, "
            f"{len(report.missing)} abandoned"
        )
        return report
