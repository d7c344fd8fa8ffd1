"""
Registry Module - Pydantic Schemas
"""
from datetime import datetime

from pydantic import ConfigDict, Field

from fleet_telemetry.modules.telemetry.models import DEVICE_ID_LENGTH
from fleet_telemetry.modules.telemetry.schemas import CamelModel


class MappingCreate(CamelModel):
    """Assign a vehicle to its charging meter."""
    vehicle_id: str = Field(..., min_length=1, max_length=DEVICE_ID_LENGTH, examples=["VEHICLE-001"])
    meter_id: str = Field(..., min_length=1, max_length=DEVICE_ID_LENGTH, examples=["METER-001"])


class MappingResponse(CamelModel):
    """Vehicle to meter association."""
    model_config = ConfigDict(from_attributes=True)

    vehicle_id: str
    meter_id: str
    assigned_at: datetime


class MeterVehiclesResponse(CamelModel):
    """Vehicles served by a meter."""
    meter_id: str
    vehicle_ids: list[str]
