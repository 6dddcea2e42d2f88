import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable

from .storage import ImageStore
from .store import RecordStore, utc_now

logger = logging.getLogger(__name__)


class DataRetention:
    """
    Reaps verification records and uploaded images past their retention window.
    Records and images have separate windows, in days.
    """

    def __init__(self, store: RecordStore, image_store: ImageStore,
                 record_days: int, image_days: int,
                 clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.image_store = image_store
        self.record_days = record_days
        self.image_days = image_days
        self._clock = clock

    async def cleanup_old_verifications(self) -> int:
        cutoff = self._clock() - timedelta(days=self.record_days)
        deleted = await self.store.delete_created_before(cutoff)
        logger.info("Cleaned up %d old verification records", deleted)
        return deleted

    async def cleanup_old_files(self) -> int:
        cutoff = self._clock() - timedelta(days=self.image_days)
        deleted = await asyncio.to_thread(self.image_store.delete_older_than, cutoff)
        logger.info("Cleaned up %d old files", deleted)
        return deleted

    async def delete_file(self, ref: str) -> bool:
        return await asyncio.to_thread(self.image_store.delete, ref)

