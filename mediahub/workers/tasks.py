"""Celery tasks for periodic maintenance."""

import logging

from mediahub.config import get_settings
from mediahub.db.session import SessionLocal
from mediahub.services.reconciliation_service import ReconciliationService
from mediahub.services.session_service import SessionService
from mediahub.storage.blob_storage import S3Storage
from mediahub.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, ignore_result=False)
def reconcile_uploads(self) -> dict:
    """
    Cross-check stale PENDING upload intents against object storage.

    Read-only: the report is logged and returned, intents are left as they
    are.

    Returns:
        Counts of checked, present and missing intents
    """
    settings = get_settings()
    db = SessionLocal()

    try:
        service = ReconciliationService(db, S3Storage(settings), settings)
        report = service.run()
        return {
            "checked": report.checked,
            "present": len(report.present),
            "missing": len(report.missing),
        }

    except Exception as e:
        logger.error(f"[sync-uploads] Error during sync: {e}")
        raise

    finally:
        db.close()


@celery_app.task(bind=True)
def purge_expired_sessions(self) -> dict:
    """
    Delete session rows that are already past their expiry.

    Returns:
        Number of rows removed
    """
    settings = get_settings()
    db = SessionLocal()

    try:
        purged = SessionService(db, settings).purge_expired_sessions()
        return {"purged": purged}

    finally:
        db.close()
