"""
Analytics Module - Pydantic Schemas
"""
from datetime import datetime
from enum import Enum

from pydantic import Field

from fleet_telemetry.modules.telemetry.schemas import CamelModel


class EfficiencyStatus(str, Enum):
    """AC-to-DC conversion health."""
    OPTIMAL = "optimal"      # >= 85 %
    DEGRADED = "degraded"    # 75 - 85 %
    CRITICAL = "critical"    # < 75 %


class PerformanceReport(CamelModel):
    """24 hour charging performance of one vehicle."""
    vehicle_id: str
    meter_id: str
    time_range_start: datetime
    time_range_end: datetime
    total_ac_consumed: float = Field(..., description="AC energy drawn by the associated meter (kWh)")
    total_dc_delivered: float = Field(..., description="DC energy stored in the battery (kWh)")
    efficiency_ratio: float = Field(
        ...,
        description="DC / AC from the 3 dp totals, rounded to 4 dp; 0 when no AC was drawn",
    )
    efficiency_pct: float
    energy_loss: float = Field(..., description="AC - DC conversion loss (kWh)")
    avg_battery_temp: float = Field(..., description="Average battery temperature (Celsius)")
    reading_count: int
    expected_readings: int
    completeness: float = Field(..., description="Received / expected readings (%)")
    status: EfficiencyStatus
    status_message: str


class StatusBreakdown(CamelModel):
    """Vehicle count per efficiency status."""
    optimal: int = 0
    degraded: int = 0
    critical: int = 0


class FleetSummary(CamelModel):
    """Fleet-wide efficiency rollup."""
    total_vehicles: int = Field(default=0, description="Vehicles with a current state")
    evaluated_vehicles: int = Field(default=0, description="Vehicles with computable performance")
    skipped_vehicles: int = Field(default=0, description="Vehicles without mapping or data in window")
    total_ac_consumed: float = 0.0
    total_dc_delivered: float = 0.0
    fleet_efficiency_pct: float = 0.0
    status_breakdown: StatusBreakdown = Field(default_factory=StatusBreakdown)
    alerts: list[str] = Field(default_factory=list)
    time_range_start: datetime
    time_range_end: datetime


class AnomalyEntry(CamelModel):
    """Vehicle below the efficiency threshold."""
    vehicle_id: str
    meter_id: str
    efficiency_pct: float
    status: EfficiencyStatus
    energy_loss: float


class AnomalyReport(CamelModel):
    """Anomaly scan result, worst vehicle first."""
    threshold: float
    anomalies_detected: int
    vehicles: list[AnomalyEntry]
    action: str
