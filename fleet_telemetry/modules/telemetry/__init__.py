"""
Telemetry Module - Hot/cold telemetry store for meters and vehicles.

Models: MeterCurrentState, VehicleCurrentState, MeterTelemetryHistory, VehicleTelemetryHistory
"""
from fleet_telemetry.modules.telemetry.models import (
    MeterCurrentState,
    MeterTelemetryHistory,
    VehicleCurrentState,
    VehicleTelemetryHistory,
)

__all__ = [
    "MeterCurrentState",
    "MeterTelemetryHistory",
    "VehicleCurrentState",
    "VehicleTelemetryHistory",
]
