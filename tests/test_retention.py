import os
from datetime import timedelta

import pytest

from verification.models import DocumentType, VerificationRecord
from verification.retention import DataRetention
from verification.storage import ImageStore
from verification.store import InMemoryRecordStore

from factories import NOW


def set_mtime(path, when):
    ts = when.timestamp()
    os.utime(path, (ts, ts))


class TestImageStore:
    def test_save_load_delete(self, tmp_path):
        images = ImageStore(str(tmp_path))
        ref = images.save(b"jpeg-bytes")

        assert ref.endswith(".jpg")
        assert images.exists(ref)
        assert images.load(ref) == b"jpeg-bytes"
        assert images.delete(ref)
        assert not images.exists(ref)
        assert not images.delete(ref)

    @pytest.mark.parametrize("ref", ["", "../escape.jpg", "a/b.jpg", ".env"])
    def test_rejects_unsafe_refs(self, tmp_path, ref):
        with pytest.raises(ValueError):
            ImageStore(str(tmp_path)).load(ref)

    def test_delete_older_than(self, tmp_path):
        images = ImageStore(str(tmp_path))
        old = images.save(b"old")
        new = images.save(b"new")
        set_mtime(tmp_path / old, NOW - timedelta(days=3))
        set_mtime(tmp_path / new, NOW)

        assert images.delete_older_than(NOW - timedelta(days=1)) == 1
        assert not images.exists(old)
        assert images.exists(new)


class TestDataRetention:
    @pytest.mark.asyncio
    async def test_cleanup_old_verifications(self, tmp_path):
        clock = lambda: NOW  # noqa: E731
        store = InMemoryRecordStore(clock=lambda: NOW - timedelta(days=91))
        old = await store.create(VerificationRecord(user_id="old_user", document_type=DocumentType.ID_CARD))
        store._clock = clock
        fresh = await store.create(VerificationRecord(user_id="new_user", document_type=DocumentType.ID_CARD))

        retention = DataRetention(store, ImageStore(str(tmp_path)), record_days=90, image_days=1, clock=clock)

        assert await retention.cleanup_old_verifications() == 1
        assert await store.find_by_id(old.id) is None
        assert await store.find_by_id(fresh.id) is not None

    @pytest.mark.asyncio
    async def test_cleanup_old_files(self, tmp_path):
        images = ImageStore(str(tmp_path))
        old = images.save(b"old")
        set_mtime(tmp_path / old, NOW - timedelta(days=2))
        fresh = images.save(b"fresh")
        set_mtime(tmp_path / fresh, NOW - timedelta(hours=2))

        retention = DataRetention(InMemoryRecordStore(), images, record_days=90, image_days=1,
                                  clock=lambda: NOW)

        assert await retention.cleanup_old_files() == 1
        assert images.exists(fresh)

    @pytest.mark.asyncio
    async def test_delete_file(self, tmp_path):
        images = ImageStore(str(tmp_path))
        ref = images.save(b"data")
        retention = DataRetention(InMemoryRecordStore(), images, record_days=90, image_days=1)

        assert await retention.delete_file(ref) is True
        assert await retention.delete_file(ref) is False
