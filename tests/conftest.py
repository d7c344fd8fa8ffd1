"""
Pytest Configuration and Fixtures.

Every test gets a fresh in-memory SQLite database.
"""
import os

# Must be set before the application settings are imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("SENTRY_DSN", "")

from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import fleet_telemetry.modules.registry.models  # noqa: F401
import fleet_telemetry.modules.telemetry.models  # noqa: F401
from fleet_telemetry.core.database import get_db
from fleet_telemetry.core.models import Base
from fleet_telemetry.main import app
from fleet_telemetry.modules.analytics.service import AnalyticsService
from fleet_telemetry.modules.registry.service import RegistryService
from fleet_telemetry.modules.telemetry.service import TelemetryService

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Fixed analytics window end used across tests
WINDOW_END = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def window_end() -> datetime:
    return WINDOW_END


@pytest.fixture
async def engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def telemetry_service(db_session) -> TelemetryService:
    return TelemetryService(db_session)


@pytest.fixture
def registry_service(db_session) -> RegistryService:
    return RegistryService(db_session)


@pytest.fixture
def analytics_service(db_session) -> AnalyticsService:
    return AnalyticsService(db_session)


@pytest.fixture
async def client(session_maker):
    """HTTP client bound to the test database."""

    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
    app.dependency_overrides.clear()
