"""
Registry Module - FastAPI Dependencies
"""
from typing import Annotated

from fastapi import Depends

from fleet_telemetry.core.database import AsyncSessionDep
from fleet_telemetry.modules.registry.service import RegistryService


async def get_registry_service(
    db: AsyncSessionDep,
) -> RegistryService:
    """Get RegistryService instance."""
    return RegistryService(db)


RegistryServiceDep = Annotated[RegistryService, Depends(get_registry_service)]
