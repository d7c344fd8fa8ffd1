"""
Telemetry Module - FastAPI Dependencies
"""
from typing import Annotated

from fastapi import Depends

from fleet_telemetry.core.database import AsyncSessionDep
from fleet_telemetry.modules.telemetry.service import TelemetryService


async def get_telemetry_service(
    db: AsyncSessionDep,
) -> TelemetryService:
    """Get TelemetryService instance."""
    return TelemetryService(db)


# Type aliases
TelemetryServiceDep = Annotated[TelemetryService, Depends(get_telemetry_service)]
