"""
Analytics Module - FastAPI Dependencies
"""
from typing import Annotated

from fastapi import Depends

from fleet_telemetry.core.database import AsyncSessionDep
from fleet_telemetry.modules.analytics.service import AnalyticsService


async def get_analytics_service(
    db: AsyncSessionDep,
) -> AnalyticsService:
    """Get AnalyticsService instance."""
    return AnalyticsService(db)


AnalyticsServiceDep = Annotated[AnalyticsService, Depends(get_analytics_service)]
