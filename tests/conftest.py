import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from courtbook.config import settings
from courtbook.models.database import Base
from courtbook.models.schemas import AuthenticatedUser


@pytest_asyncio.fixture
async def test_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def test_db(test_engine, monkeypatch):
    """Point DatabaseService at the in-memory database."""
    session_local = sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr("courtbook.services.database_service.AsyncSessionLocal", session_local)
    return session_local


@pytest.fixture
def configured(monkeypatch):
    """Site credentials and an authorized user, without a Gemini key."""
    monkeypatch.setattr(settings, "rec_email", "owner@example.com")
    monkeypatch.setattr(settings, "rec_password", "secret")
    monkeypatch.setattr(settings, "authorized_user_emails", "owner@example.com, Friend@Example.com")
    monkeypatch.setattr(settings, "gemini_api_key", "")
    monkeypatch.setattr(settings, "operating_year", None)
    return settings


@pytest.fixture
def user() -> AuthenticatedUser:
    return AuthenticatedUser(id="user-1", email="owner@example.com")
