"""
Telemetry Module - Pydantic Schemas (DTOs)

JSON payloads use camelCase (`meterId`, `acEnergyConsumedKwh`, ...);
snake_case field names are accepted as well.
"""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from fleet_telemetry.core.config import settings
from fleet_telemetry.core.models import ensure_utc
from fleet_telemetry.modules.telemetry.models import DEVICE_ID_LENGTH


class CamelModel(BaseModel):
    """Base schema with camelCase aliases."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        allow_inf_nan=False,
    )


class ReadingBase(CamelModel):
    """Fields shared by every reading."""
    timestamp: datetime = Field(..., description="Reading time (ISO 8601); naive values are UTC")

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return ensure_utc(value)


# ============== Input Schemas ==============

class MeterReadingInput(ReadingBase):
    """A single smart-meter reading."""
    meter_id: str = Field(..., min_length=1, max_length=DEVICE_ID_LENGTH, examples=["METER-001"])
    ac_energy_consumed_kwh: float = Field(..., ge=0, description="AC energy drawn from the grid (kWh)")
    voltage: float = Field(..., ge=0, le=500, description="Line voltage (V)")


class VehicleReadingInput(ReadingBase):
    """A single vehicle battery reading."""
    vehicle_id: str = Field(..., min_length=1, max_length=DEVICE_ID_LENGTH, examples=["VEHICLE-001"])
    state_of_charge: float = Field(..., ge=0, le=100, description="Battery state of charge (%)")
    dc_energy_delivered_kwh: float = Field(..., ge=0, description="DC energy delivered to the battery (kWh)")
    battery_temperature_c: float = Field(..., ge=-40, le=80, description="Battery temperature (Celsius)")


class MeterReadingBatch(CamelModel):
    """Batch of meter readings."""
    data: list[MeterReadingInput] = Field(
        ...,
        max_length=settings.telemetry_batch_max_size,
        description="Meter readings, ingested in order",
    )


class VehicleReadingBatch(CamelModel):
    """Batch of vehicle readings."""
    data: list[VehicleReadingInput] = Field(
        ...,
        max_length=settings.telemetry_batch_max_size,
        description="Vehicle readings, ingested in order",
    )


# ============== Response Schemas ==============

class IngestionResponse(CamelModel):
    """Ingestion acknowledgement."""
    success: bool = True
    message: str
    count: int


class MeterStateResponse(CamelModel):
    """Current state of a meter."""
    model_config = ConfigDict(from_attributes=True)

    meter_id: str
    ac_energy_consumed_kwh: float
    voltage: float
    last_update: datetime
    recorded_at: datetime


class VehicleStateResponse(CamelModel):
    """Current state of a vehicle."""
    model_config = ConfigDict(from_attributes=True)

    vehicle_id: str
    state_of_charge: float
    dc_energy_delivered_kwh: float
    battery_temperature_c: float
    last_update: datetime
    recorded_at: datetime


class MeterStateListResponse(CamelModel):
    """Meter states, most recently active first."""
    count: int
    data: list[MeterStateResponse]


class VehicleStateListResponse(CamelModel):
    """Vehicle states, most recently active first."""
    count: int
    data: list[VehicleStateResponse]


class MeterHistoryResponse(CamelModel):
    """Meter history row."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    meter_id: str
    ac_energy_consumed_kwh: float
    voltage: float
    timestamp: datetime
    recorded_at: datetime


class VehicleHistoryResponse(CamelModel):
    """Vehicle history row."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    vehicle_id: str
    state_of_charge: float
    dc_energy_delivered_kwh: float
    battery_temperature_c: float
    timestamp: datetime
    recorded_at: datetime
