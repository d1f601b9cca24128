"""Celery application configuration."""

from celery import Celery

from mediahub.config import get_settings

settings = get_settings()

# Create Celery app
celery_app = Celery(
    "mediahub",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["mediahub.workers.tasks"],
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task routing
    task_routes={
        "mediahub.workers.tasks.reconcile_uploads": {"queue": "maintenance"},
        "mediahub.workers.tasks.purge_expired_sessions": {"queue": "maintenance"},
    },

    # Periodic sweeps; neither is needed for correctness
    beat_schedule={
        "reconcile-uploads": {
            "task": "mediahub.workers.tasks.reconcile_uploads",
            "schedule": float(settings.RECONCILE_INTERVAL_SECONDS),
        },
        "purge-expired-sessions": {
            "task": "mediahub.workers.tasks.purge_expired_sessions",
            "schedule": float(settings.SESSION_PURGE_INTERVAL_SECONDS),
        },
    },

    # Result settings
    result_expires=3600,  # Results expire after 1 hour

    # Worker settings
    worker_prefetch_multiplier=1,  # One task at a time per worker
)
