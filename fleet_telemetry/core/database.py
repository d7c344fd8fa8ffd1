"""
Async Database Session Management
SQLAlchemy 2.0 Async with connection pooling optimized for high concurrency.
"""
from collections.abc import AsyncGenerator, Iterator
from contextlib import contextmanager
from typing import Annotated, Any

from fastapi import Depends
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from fleet_telemetry.core.config import settings
from fleet_telemetry.core.exceptions import FleetTelemetryException
from fleet_telemetry.core.logging import get_logger

logger = get_logger(__name__)


def _engine_options() -> dict[str, Any]:
    if settings.is_sqlite:
        # In-memory SQLite must share one connection across the pool
        return {
            "echo": settings.db_echo,
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    return {
        "echo": settings.db_echo,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_pre_ping": True,  # Verify connections before use
        "pool_recycle": 3600,  # Recycle connections after 1 hour
    }


engine: AsyncEngine = create_async_engine(settings.async_database_url, **_engine_options())

# Session factory
async_session_maker = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that yields an async database session.
    Use with FastAPI's Depends() for dependency injection.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# Type alias for dependency injection
AsyncSessionDep = Annotated[AsyncSession, Depends(get_db)]


def dialect_insert(session: AsyncSession, table: Any):
    """
    Dialect-specific INSERT supporting ON CONFLICT DO UPDATE.

    PostgreSQL in production, SQLite in tests.
    """
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        return sqlite.insert(table)
    return postgresql.insert(table)


@contextmanager
def translate_storage_errors(
    error_cls: type[FleetTelemetryException],
    operation: str,
    **context: Any,
) -> Iterator[None]:
    """Log SQLAlchemy failures and re-raise them as a domain error."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(
            "Storage operation failed",
            operation=operation,
            error=str(e),
            **context,
        )
        raise error_cls(
            f"Storage failure during {operation}",
            details={"operation": operation, **{k: str(v) for k, v in context.items()}},
        ) from e


async def init_db() -> None:
    """Initialize database tables."""
    from fleet_telemetry.core.models import Base
    import fleet_telemetry.modules.registry.models  # noqa: F401
    import fleet_telemetry.modules.telemetry.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
