"""
Global test fixtures and configuration.

This module provides base fixtures for all tests:
- In-memory SQLite database, fresh schema per test
- Controllable clock for simulated time
- Recording OTP delivery double
- HTTP client with dependency overrides
- Base data fixtures (user, student, lecturer, auth_headers)
"""

import os
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, List, Tuple

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables BEFORE importing app
os.environ["MODE"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["OTP_DELIVERY_BACKEND"] = "console"
os.environ["OTP_DELIVERY_FAILURE_POLICY"] = "rollback"
os.environ.pop("SENTRY_DSN", None)

from app.main import app  # noqa: E402
from app.api.dependencies import get_clock, get_db, get_delivery  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.services.delivery import OtpDelivery, OtpDeliveryError  # noqa: E402


# ==================== Clock ====================

class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc))


# ==================== Delivery ====================

class RecordingDelivery(OtpDelivery):
    """Keeps every sent code; set ``fail = True`` to simulate a transport error."""

    def __init__(self):
        super().__init__()
        self.sent: List[Tuple[str, str, str, int]] = []
        self.fail = False

    async def send(self, owner_key: str, code: str, purpose: str, ttl_minutes: int) -> None:
        if self.fail:
            raise OtpDeliveryError("SMTP connection refused")
        self.sent.append((owner_key, code, purpose, ttl_minutes))

    def last_code(self) -> str:
        return self.sent[-1][1]


@pytest.fixture
def delivery() -> RecordingDelivery:
    return RecordingDelivery()


# ==================== Database ====================

@pytest.fixture
async def test_engine():
    """
    In-memory SQLite engine with a single shared connection.

    Creates all tables before the test and drops them after.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,  # Set to True for SQL debugging
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(bind=test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    session = session_factory()
    yield session
    await session.close()


# ==================== FastAPI Client ====================

@pytest.fixture
async def client(
    db_session: AsyncSession,
    clock: FrozenClock,
    delivery: RecordingDelivery,
) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client for the FastAPI app.

    Overrides get_db, get_clock and get_delivery to use test fixtures.
    """

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_delivery] = lambda: delivery

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ==================== Base Data Fixtures ====================

@pytest.fixture
async def user(db_session: AsyncSession):
    """Active student-role account with email login only."""
    from tests.factories.user import UserFactory
    user = await UserFactory.create_async(db_session, email="user@test.com")
    await db_session.commit()
    return user


@pytest.fixture
async def student(db_session: AsyncSession):
    from tests.factories.user import UserFactory
    user = await UserFactory.create_student_async(
        db_session,
        email="student@test.com",
        registration_number="DENT/2023/001",
    )
    await db_session.commit()
    return user


@pytest.fixture
async def lecturer(db_session: AsyncSession):
    from tests.factories.user import UserFactory
    user = await UserFactory.create_lecturer_async(
        db_session,
        email="lecturer@test.com",
        staff_id="LEC/045",
    )
    await db_session.commit()
    return user


@pytest.fixture
async def auth_headers(user):
    from app.core.security import create_access_token

    token = create_access_token(
        data={"sub": str(user.id), "role": user.role},
        token_version=user.token_version,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def anyio_backend():
    return "asyncio"
