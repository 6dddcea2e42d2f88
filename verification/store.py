"""
Verification record storage.

Two backends share the same async interface:

- InMemoryRecordStore: a dict, suitable for tests and single-process dev.
- SqlRecordStore: the `verifications` table behind an async SQLAlchemy
  engine (DATABASE_URL). The table is created on first use.

Records handed out are detached copies, so a caller mutating a record never
changes the stored state until it calls `save`. `save` keeps the original
created_at and refreshes updated_at.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Protocol

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .database import Base, VerificationRow
from .models import VerificationRecord


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RecordStore(Protocol):
    async def create(self, record: VerificationRecord) -> VerificationRecord: ...

    async def save(self, record: VerificationRecord) -> VerificationRecord: ...

    async def find_by_id(self, verification_id: str) -> Optional[VerificationRecord]: ...

    async def delete_created_before(self, cutoff: datetime) -> int: ...

    async def close(self) -> None: ...


class InMemoryRecordStore:
    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._records: Dict[str, VerificationRecord] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def create(self, record: VerificationRecord) -> VerificationRecord:
        now = self._clock()
        record.created_at = now
        record.updated_at = now
        async with self._lock:
            self._records[record.id] = record.model_copy(deep=True)
        return record

    async def save(self, record: VerificationRecord) -> VerificationRecord:
        async with self._lock:
            existing = self._records.get(record.id)
            now = self._clock()
            record.created_at = existing.created_at if existing else (record.created_at or now)
            record.updated_at = now
            self._records[record.id] = record.model_copy(deep=True)
        return record

    async def find_by_id(self, verification_id: str) -> Optional[VerificationRecord]:
        async with self._lock:
            record = self._records.get(verification_id)
            return record.model_copy(deep=True) if record else None

    async def delete_created_before(self, cutoff: datetime) -> int:
        async with self._lock:
            stale = [rid for rid, r in self._records.items() if r.created_at and r.created_at < cutoff]
            for rid in stale:
                del self._records[rid]
        return len(stale)

    async def close(self) -> None:
        pass


class SqlRecordStore:
    """Stores records in the `verifications` table through an async engine"""

    def __init__(self, engine: AsyncEngine, clock: Callable[[], datetime] = utc_now) -> None:
        self.engine = engine
        self.session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        self._clock = clock
        self._schema_ready = False
        self._schema_lock = asyncio.Lock()

    @classmethod
    def from_url(cls, database_url: str, clock: Callable[[], datetime] = utc_now) -> "SqlRecordStore":
        return cls(create_async_engine(database_url, echo=False), clock)

    async def create_tables(self) -> None:
        async with self._schema_lock:
            if self._schema_ready:
                return
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            self._schema_ready = True

    async def close(self) -> None:
        await self.engine.dispose()

    async def create(self, record: VerificationRecord) -> VerificationRecord:
        await self.create_tables()
        now = self._clock()
        record.created_at = now
        record.updated_at = now
        async with self.session_factory() as db:
            db.add(VerificationRow(**_row_values(record)))
            await db.commit()
        return record

    async def save(self, record: VerificationRecord) -> VerificationRecord:
        await self.create_tables()
        async with self.session_factory() as db:
            row = await db.get(VerificationRow, record.id)
            now = self._clock()
            if row is None:
                record.created_at = record.created_at or now
                row = VerificationRow(id=record.id)
                db.add(row)
            else:
                record.created_at = _as_utc(row.created_at)
            record.updated_at = now
            for key, value in _row_values(record).items():
                if key != "id":
                    setattr(row, key, value)
            await db.commit()
        return record

    async def find_by_id(self, verification_id: str) -> Optional[VerificationRecord]:
        await self.create_tables()
        async with self.session_factory() as db:
            row = await db.get(VerificationRow, verification_id)
            return _to_record(row) if row else None

    async def delete_created_before(self, cutoff: datetime) -> int:
        await self.create_tables()
        async with self.session_factory() as db:
            result = await db.execute(
                delete(VerificationRow).where(VerificationRow.created_at < cutoff.astimezone(timezone.utc))
            )
            await db.commit()
            return result.rowcount or 0


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is written in UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _row_values(record: VerificationRecord) -> Dict[str, Any]:
    values = record.model_dump(mode="json")
    values["created_at"] = record.created_at.astimezone(timezone.utc)
    values["updated_at"] = record.updated_at.astimezone(timezone.utc)
    return values


def _to_record(row: VerificationRow) -> VerificationRecord:
    values = {column.key: getattr(row, column.key) for column in VerificationRow.__table__.columns}
    values["created_at"] = _as_utc(row.created_at)
    values["updated_at"] = _as_utc(row.updated_at)
    return VerificationRecord.model_validate(values)
