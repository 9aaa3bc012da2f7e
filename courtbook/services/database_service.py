"""
Database service for persistent key/value storage.

This module provides async get/put/delete over KeyValueRecord. Entries may
carry a time-to-live; an expired entry reads as absent and is removed lazily
on the next read.
"""

from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, select

from courtbook.models.database import AsyncSessionLocal, KeyValueRecord


def utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class DatabaseService:
    """
    Provides key/value operations on the kv_entries table.

    Values are stored as text; callers serialize their documents (the booking
    and auth stores use pydantic's model_dump_json).
    """

    @staticmethod
    def _is_expired(record: KeyValueRecord, now: datetime) -> bool:
        return record.expires_at is not None and record.expires_at <= now  # type: ignore[return-value]

    async def put(
        self,
        key: str,
        value: str,
        ttl_seconds: float | None = None,
        now: datetime | None = None,
    ) -> None:
        """Create or overwrite the entry for `key`."""
        now = now or utcnow()
        expires_at = now + timedelta(seconds=ttl_seconds) if ttl_seconds is not None else None
        async with AsyncSessionLocal() as db:
            result = await db.execute(select(KeyValueRecord).where(KeyValueRecord.key == key))
            record = result.scalar_one_or_none()
            if record:
                record.value = value  # type: ignore[assignment]
                record.expires_at = expires_at  # type: ignore[assignment]
                record.updated_at = now  # type: ignore[assignment]
            else:
                db.add(
                    KeyValueRecord(
                        key=key,
                        value=value,
                        expires_at=expires_at,
                        created_at=now,
                        updated_at=now,
                    )
                )
            await db.commit()

    async def get(self, key: str, now: datetime | None = None) -> str | None:
        """Get the value stored under `key`, or None if absent or expired."""
        now = now or utcnow()
        async with AsyncSessionLocal() as db:
            result = await db.execute(select(KeyValueRecord).where(KeyValueRecord.key == key))
            record = result.scalar_one_or_none()
            if not record:
                return None
            if self._is_expired(record, now):
                await db.delete(record)
                await db.commit()
                return None
            return record.value  # type: ignore[return-value]

    async def delete(self, key: str) -> bool:
        """Remove the entry for `key`. Returns whether one existed."""
        async with AsyncSessionLocal() as db:
            result = await db.execute(delete(KeyValueRecord).where(KeyValueRecord.key == key))
            await db.commit()
            return bool(result.rowcount)

    async def list_keys(self, prefix: str, now: datetime | None = None) -> list[str]:
        """Unexpired keys starting with `prefix`, most recently written first."""
        now = now or utcnow()
        async with AsyncSessionLocal() as db:
            query = (
                select(KeyValueRecord)
                .where(KeyValueRecord.key.startswith(prefix, autoescape=True))
                .order_by(KeyValueRecord.updated_at.desc(), KeyValueRecord.id.desc())
            )
            result = await db.execute(query)
            records = result.scalars().all()
            return [r.key for r in records if not self._is_expired(r, now)]  # type: ignore[misc]


database_service = DatabaseService()
