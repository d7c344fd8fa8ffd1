"""
Core Configuration Module
Uses pydantic-settings for environment variable management.
All secrets loaded from .env file - NEVER hardcode secrets.
"""
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    project_name: str = "Fleet Telemetry"
    environment: str = Field(default="development", description="development | staging | production")
    debug: bool = Field(default=False, description="Debug mode")
    api_v1_str: str = "/api/v1"
    app_version: str = Field(default="1.0.0", description="Application version")

    # Database - PostgreSQL (asyncpg), SQLite (aiosqlite) for tests
    database_url: str = Field(
        default="",
        description="Full database URL (takes precedence over the components)",
    )
    db_host: str = Field(default="localhost", description="Database host")
    db_port: int = Field(default=5432, description="Database port")
    db_name: str = Field(default="fleet_telemetry", description="Database name")
    db_user: str = Field(default="fleet", description="Database user")
    db_password: str = Field(default="fleet123", description="Database password")
    db_pool_size: int = Field(default=20, description="SQLAlchemy connection pool size")
    db_max_overflow: int = Field(default=10, description="Max overflow connections")
    db_echo: bool = Field(default=False, description="Echo SQL queries")
    run_db_init: bool = Field(default=False, description="Create tables on startup")

    # CORS
    cors_origins: str = Field(default="http://localhost:3000", description="Allowed CORS origins, comma-separated")

    # Sentry (Error Tracking)
    sentry_dsn: str = Field(default="", description="Sentry DSN for error tracking")
    sentry_traces_sample_rate: float = Field(default=0.1, description="Sentry traces sample rate")

    # Prometheus
    prometheus_enabled: bool = Field(default=True, description="Enable Prometheus metrics")

    # Telemetry
    telemetry_batch_max_size: int = Field(default=1000, description="Max readings per batch request")

    # Analytics
    anomaly_threshold_pct: float = Field(default=85.0, description="Default anomaly efficiency threshold (%)")

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def async_database_url(self) -> str:
        """Build async database URL from components or use direct URL."""
        url = self.database_url
        if url:
            if url.startswith("postgresql://"):
                url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
            elif url.startswith("sqlite://"):
                url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)
            return url
        # Build from components
        return f"postgresql+asyncpg://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def is_sqlite(self) -> bool:
        return self.async_database_url.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
