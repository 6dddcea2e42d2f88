"""Celery tasks for verification data retention.

Run the scheduler and a worker with:

    celery -A verification.tasks beat
    celery -A verification.tasks worker
"""

import asyncio
import logging

from celery import Celery
from celery.schedules import crontab

from config import settings
from .bootstrap import build_record_store, build_retention
from .storage import ImageStore

logger = logging.getLogger(__name__)

celery_app = Celery(
    "verification",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
)

celery_app.conf.beat_schedule = {
    "cleanup-old-verifications": {
        "task": "verification.tasks.cleanup_old_verifications",
        "schedule": crontab(hour=0, minute=0),  # daily at midnight
    },
    "cleanup-old-files": {
        "task": "verification.tasks.cleanup_old_files",
        "schedule": crontab(minute=0),  # hourly
    },
}


async def _cleanup(kind: str) -> int:
    store = build_record_store(settings)
    retention = build_retention(settings, store, ImageStore(settings.UPLOAD_DIR))
    try:
        if kind == "verifications":
            return await retention.cleanup_old_verifications()
        return await retention.cleanup_old_files()
    finally:
        await store.close()


def _run(kind: str) -> int:
    if not settings.RETENTION_ENABLED:
        logger.info("Data retention disabled, skipping %s cleanup", kind)
        return 0
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(_cleanup(kind))
    finally:
        loop.close()


@celery_app.task(name="verification.tasks.cleanup_old_verifications")
def cleanup_old_verifications():
    """Delete verification records older than DATA_RETENTION_DAYS."""
    return _run("verifications")


@celery_app.task(name="verification.tasks.cleanup_old_files")
def cleanup_old_files():
    """Delete uploaded images older than DOCUMENT_RETENTION_DAYS."""
    return _run("files")
