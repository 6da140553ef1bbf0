"""
Pytest configuration and fixtures for the backend tests.
"""
import os

# Settings are read at import time; keep tests off Mongo and off the log directory
os.environ.setdefault("USE_MONGO", "false")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("LOG_LEVEL", "INFO")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from unittest.mock import AsyncMock, MagicMock
from faker import Faker

from main import app
from api.dependencies import get_otp_service, get_otp_store
from core.config import OtpPolicy
from db.base import initialize_database
from db.sql_otp_store import SqlOtpStore
from schemas.otp_schema import OtpRecord
from services.otp_service import OtpService

# Initialize Faker for test data generation
fake = Faker()


class FrozenClock:
    """Controllable stand-in for the service clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
async def test_engine():
    """In-memory SQLite shared across connections for one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await initialize_database(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(bind=test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def otp_store(session_factory) -> SqlOtpStore:
    return SqlOtpStore(session_factory)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def policy() -> OtpPolicy:
    return OtpPolicy()


@pytest.fixture
def email_channel():
    channel = MagicMock()
    channel.send = AsyncMock(return_value=None)
    return channel


@pytest.fixture
def sms_channel():
    channel = MagicMock()
    channel.send = AsyncMock(return_value=None)
    return channel


@pytest.fixture
def otp_service(otp_store, email_channel, sms_channel, policy, clock) -> OtpService:
    return OtpService(
        otp_store,
        email_channel=email_channel,
        sms_channel=sms_channel,
        policy=policy,
        clock=clock,
    )


@pytest.fixture
async def async_client(otp_service: OtpService, otp_store: SqlOtpStore) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client wired to the test service."""
    app.dependency_overrides[get_otp_store] = lambda: otp_store
    app.dependency_overrides[get_otp_service] = lambda: otp_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def sample_email() -> str:
    return fake.email()


@pytest.fixture
def sample_phone() -> str:
    return "+1" + fake.numerify("##########")


@pytest.fixture
def make_record(clock):
    """Build an unsaved record relative to the frozen clock."""
    def _make(email=None, phone=None, otp=123456, age=timedelta(0), ttl=timedelta(minutes=5)) -> OtpRecord:
        created = clock() - age
        return OtpRecord(
            email=email,
            phone=phone,
            otp=otp,
            expiration=created + ttl,
            attempts=0,
            created_at=created,
        )
    return _make


@pytest.fixture
def mock_mongo_collection():
    """Mock motor collection for store tests."""
    collection = MagicMock()
    collection.count_documents = AsyncMock(return_value=0)
    collection.delete_many = AsyncMock(return_value=MagicMock(deleted_count=0))
    collection.delete_one = AsyncMock(return_value=MagicMock(deleted_count=1))
    collection.insert_one = AsyncMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.database.command = AsyncMock(return_value={"ok": 1})
    return collection
