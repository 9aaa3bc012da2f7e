"""
SQLAlchemy database models for persistent storage.

Pending bookings, completed bookings and auth sessions are all stored as JSON
documents under string keys in a single key/value table, each with an
optional expiry.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from courtbook.config import settings


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class KeyValueRecord(Base):
    """
    One stored document.

    Columns:
        id: Auto-incrementing primary key.
        key: Application-level key, e.g. "pending_booking:{user_id}" or
            "booking:{date}".
        value: JSON-serialized document.
        expires_at: UTC time after which the entry reads as absent. NULL
            means the entry never expires.
        created_at: When this record was first written.
        updated_at: When this record was last written.
    """

    __tablename__ = "kv_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(255), unique=True, nullable=False, index=True)
    value = Column(Text, nullable=False)
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


engine = create_async_engine(
    settings.database_url.replace("sqlite://", "sqlite+aiosqlite://")
    if settings.database_url.startswith("sqlite://")
    else settings.database_url,
    echo=False,
)

AsyncSessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
