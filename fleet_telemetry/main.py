"""
Fleet Telemetry - Main Application Entry Point
Application Factory Pattern with ORJSONResponse as the default response class.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from fleet_telemetry import __version__
from fleet_telemetry.core.config import settings
from fleet_telemetry.core.database import close_db, init_db
from fleet_telemetry.core.exceptions import (
    FleetTelemetryException,
    fleet_exception_handler,
    generic_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from fleet_telemetry.core.logging import RequestContextMiddleware, configure_logging, get_logger
from fleet_telemetry.core.metrics import MetricsMiddleware
from fleet_telemetry.core.sentry import init_sentry

# Configure logging on module load
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info(
        "Starting Fleet Telemetry",
        environment=settings.environment,
        debug=settings.debug,
    )

    if settings.run_db_init:
        await init_db()
        logger.info("Database initialized")

    yield

    logger.info("Shutting down Fleet Telemetry")
    await close_db()


TAGS_METADATA = [
    {
        "name": "Telemetry",
        "description": "Meter and vehicle reading ingestion, current state and history.",
    },
    {
        "name": "Registry",
        "description": "Vehicle to charging meter associations.",
    },
    {
        "name": "Analytics",
        "description": """
AC-to-DC charging efficiency over a 24 hour window.

| Status | Efficiency |
|--------|------------|
| `optimal` | >= 85 % |
| `degraded` | 75 - 85 % |
| `critical` | < 75 % |
        """,
    },
]


def create_application() -> FastAPI:
    """
    Application factory function.
    Creates and configures the FastAPI application.
    """
    app = FastAPI(
        title=settings.project_name,
        summary="EV fleet charging telemetry and efficiency analytics",
        version=settings.app_version,
        openapi_url="/openapi.json",
        openapi_tags=TAGS_METADATA,
        docs_url="/docs",
        redoc_url="/redoc",
        default_response_class=ORJSONResponse,
        debug=settings.debug,
        lifespan=lifespan,
    )

    init_sentry()

    if settings.prometheus_enabled:
        app.add_middleware(MetricsMiddleware)

    # Register exception handlers
    app.add_exception_handler(FleetTelemetryException, fleet_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)

    _include_routers(app)

    @app.get("/health", tags=["health"], response_class=ORJSONResponse)
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "service": "fleet-telemetry"}

    @app.get("/", tags=["root"], response_class=ORJSONResponse)
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {
            "service": settings.project_name,
            "version": __version__,
            "docs": "/docs",
        }

    return app


def _include_routers(app: FastAPI) -> None:
    """
    Include all module routers under the versioned prefix.
    The metrics endpoint is served at root level.
    """
    from fleet_telemetry.core.metrics import router as metrics_router
    from fleet_telemetry.modules.analytics.router import router as analytics_router
    from fleet_telemetry.modules.registry.router import router as registry_router
    from fleet_telemetry.modules.telemetry.router import router as telemetry_router

    api_v1_prefix = settings.api_v1_str

    for router in (telemetry_router, registry_router, analytics_router):
        app.include_router(router, prefix=api_v1_prefix)

    if settings.prometheus_enabled:
        app.include_router(metrics_router)

    logger.info(
        "Routers registered",
        modules=["telemetry", "registry", "analytics", "metrics"],
        api_prefix=api_v1_prefix,
    )


# Create application instance
app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "fleet_telemetry.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )
