"""
Analytics Module - API Router

Endpoints:
- GET /api/v1/analytics/performance/{vehicle_id} - 24h efficiency of one vehicle
- GET /api/v1/analytics/fleet/performance - Fleet-wide rollup
- GET /api/v1/analytics/anomalies - Vehicles below an efficiency threshold
"""
from datetime import datetime

from fastapi import APIRouter, Query

from fleet_telemetry.core.config import settings
from fleet_telemetry.core.models import utc_now
from fleet_telemetry.modules.analytics.dependencies import AnalyticsServiceDep
from fleet_telemetry.modules.analytics.schemas import (
    AnomalyReport,
    FleetSummary,
    PerformanceReport,
)

router = APIRouter(prefix="/analytics", tags=["Analytics"])

ACTION_INSPECT = "Inspect chargers and EV connections for listed vehicles"
ACTION_NONE = "All vehicles operating within normal efficiency range"


@router.get("/performance/{vehicle_id}", response_model=PerformanceReport)
async def get_vehicle_performance(
    vehicle_id: str,
    service: AnalyticsServiceDep,
    end_time: datetime | None = Query(default=None, description="Window end (default: now)"),
) -> PerformanceReport:
    """AC-to-DC efficiency of a vehicle over the 24 hours ending at `end_time`."""
    return await service.get_vehicle_performance(vehicle_id, end_time or utc_now())


@router.get("/fleet/performance", response_model=FleetSummary)
async def get_fleet_performance(
    service: AnalyticsServiceDep,
    end_time: datetime | None = Query(default=None, description="Window end (default: now)"),
) -> FleetSummary:
    """Fleet totals, efficiency, status breakdown and critical alerts."""
    return await service.get_fleet_performance(end_time or utc_now())


@router.get("/anomalies", response_model=AnomalyReport)
async def detect_anomalies(
    service: AnalyticsServiceDep,
    threshold: float = Query(
        default=settings.anomaly_threshold_pct,
        ge=0,
        description="Efficiency percentage below which a vehicle is reported",
    ),
    end_time: datetime | None = Query(default=None, description="Window end (default: now)"),
) -> AnomalyReport:
    """Vehicles below the efficiency threshold, worst first."""
    anomalies = await service.detect_anomalies(threshold, end_time or utc_now())
    return AnomalyReport(
        threshold=threshold,
        anomalies_detected=len(anomalies),
        vehicles=anomalies,
        action=ACTION_INSPECT if anomalies else ACTION_NONE,
    )
