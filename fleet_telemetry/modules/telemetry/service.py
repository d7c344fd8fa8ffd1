"""
Telemetry Module - Business Logic Service

Ingestion engine and current-state reader.

Every reading is written in its own transaction: upsert the device's
current-state row and append a history row, then commit. A batch is a
sequence of such transactions, validated as a whole before the first write.
"""
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_telemetry.core.config import settings
from fleet_telemetry.core.database import dialect_insert, translate_storage_errors
from fleet_telemetry.core.exceptions import (
    IngestionError,
    NotFoundError,
    StorageError,
    ValidationError,
    format_validation_errors,
)
from fleet_telemetry.core.logging import get_logger
from fleet_telemetry.core.metrics import record_ingestion_failure, record_readings
from fleet_telemetry.core.models import ensure_utc, utc_now
from fleet_telemetry.modules.telemetry.models import (
    DeviceType,
    MeterCurrentState,
    MeterTelemetryHistory,
    VehicleCurrentState,
    VehicleTelemetryHistory,
)
from fleet_telemetry.modules.telemetry.schemas import MeterReadingInput, VehicleReadingInput

logger = get_logger(__name__)

ReadingT = TypeVar("ReadingT", MeterReadingInput, VehicleReadingInput)

MAX_HISTORY_LIMIT = 10000


def validate_readings(
    model: type[ReadingT],
    readings: Sequence[BaseModel | Mapping[str, Any]],
    device_type: str,
) -> list[ReadingT]:
    """
    Re-validate a batch before anything is written.

    Accepts schema instances or plain mappings. The first invalid record
    rejects the whole batch.
    """
    if len(readings) > settings.telemetry_batch_max_size:
        raise ValidationError(
            f"Batch of {len(readings)} {device_type} readings exceeds the limit of "
            f"{settings.telemetry_batch_max_size}",
            details={"count": len(readings), "limit": settings.telemetry_batch_max_size},
        )

    validated: list[ReadingT] = []
    for index, raw in enumerate(readings):
        data = raw.model_dump() if isinstance(raw, BaseModel) else raw
        try:
            validated.append(model.model_validate(data))
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid {device_type} reading at index {index}",
                details={
                    "index": index,
                    "validation_errors": format_validation_errors(e.errors()),
                },
            ) from e
    return validated


class TelemetryService:
    """Dual-write ingestion into the hot and cold stores, plus state lookups."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ============== Ingestion ==============

    async def ingest_meter(self, reading: MeterReadingInput | Mapping[str, Any]) -> int:
        """Ingest a single meter reading."""
        return await self.batch_ingest_meter([reading])

    async def ingest_vehicle(self, reading: VehicleReadingInput | Mapping[str, Any]) -> int:
        """Ingest a single vehicle reading."""
        return await self.batch_ingest_vehicle([reading])

    async def batch_ingest_meter(
        self,
        readings: Sequence[MeterReadingInput | Mapping[str, Any]],
    ) -> int:
        """Ingest meter readings in order. Returns the number of readings recorded."""
        validated = validate_readings(MeterReadingInput, readings, DeviceType.METER)
        return await self._ingest(
            validated,
            self._write_meter,
            DeviceType.METER,
            lambda r: r.meter_id,
        )

    async def batch_ingest_vehicle(
        self,
        readings: Sequence[VehicleReadingInput | Mapping[str, Any]],
    ) -> int:
        """Ingest vehicle readings in order. Returns the number of readings recorded."""
        validated = validate_readings(VehicleReadingInput, readings, DeviceType.VEHICLE)
        return await self._ingest(
            validated,
            self._write_vehicle,
            DeviceType.VEHICLE,
            lambda r: r.vehicle_id,
        )

    async def _ingest(
        self,
        readings: list[ReadingT],
        write: Callable[[ReadingT], Awaitable[None]],
        device_type: str,
        device_id_of: Callable[[ReadingT], str],
    ) -> int:
        if not readings:
            return 0

        started = time.perf_counter()
        for index, reading in enumerate(readings):
            device_id = device_id_of(reading)
            try:
                await write(reading)
                await self.db.commit()
            except SQLAlchemyError as e:
                await self.db.rollback()
                record_ingestion_failure(device_type)
                logger.error(
                    "Telemetry ingestion failed",
                    device_type=device_type,
                    device_id=device_id,
                    index=index,
                    committed=index,
                    error=str(e),
                )
                raise IngestionError(
                    f"Failed to ingest {device_type} telemetry for {device_id}",
                    details={
                        "device_type": device_type,
                        "device_id": device_id,
                        "index": index,
                        "committed": index,
                    },
                ) from e
            record_readings(device_type)

        logger.info(
            "Telemetry ingested",
            device_type=device_type,
            count=len(readings),
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return len(readings)

    async def _write_meter(self, reading: MeterReadingInput) -> None:
        """Upsert current state and append history for one meter reading."""
        recorded_at = utc_now()
        values = {
            "meter_id": reading.meter_id,
            "ac_energy_consumed_kwh": reading.ac_energy_consumed_kwh,
            "voltage": reading.voltage,
        }

        upsert = dialect_insert(self.db, MeterCurrentState).values(
            **values,
            last_update=reading.timestamp,
            recorded_at=recorded_at,
        )
        upsert = upsert.on_conflict_do_update(
            index_elements=["meter_id"],
            set_={
                "ac_energy_consumed_kwh": upsert.excluded.ac_energy_consumed_kwh,
                "voltage": upsert.excluded.voltage,
                "last_update": upsert.excluded.last_update,
                "recorded_at": upsert.excluded.recorded_at,
            },
            # Late readings go to history only
            where=MeterCurrentState.last_update <= upsert.excluded.last_update,
        )
        await self.db.execute(upsert)

        await self.db.execute(
            insert(MeterTelemetryHistory).values(
                **values,
                timestamp=reading.timestamp,
                recorded_at=recorded_at,
            )
        )

    async def _write_vehicle(self, reading: VehicleReadingInput) -> None:
        """Upsert current state and append history for one vehicle reading."""
        recorded_at = utc_now()
        values = {
            "vehicle_id": reading.vehicle_id,
            "state_of_charge": reading.state_of_charge,
            "dc_energy_delivered_kwh": reading.dc_energy_delivered_kwh,
            "battery_temperature_c": reading.battery_temperature_c,
        }

        upsert = dialect_insert(self.db, VehicleCurrentState).values(
            **values,
            last_update=reading.timestamp,
            recorded_at=recorded_at,
        )
        upsert = upsert.on_conflict_do_update(
            index_elements=["vehicle_id"],
            set_={
                "state_of_charge": upsert.excluded.state_of_charge,
                "dc_energy_delivered_kwh": upsert.excluded.dc_energy_delivered_kwh,
                "battery_temperature_c": upsert.excluded.battery_temperature_c,
                "last_update": upsert.excluded.last_update,
                "recorded_at": upsert.excluded.recorded_at,
            },
            where=VehicleCurrentState.last_update <= upsert.excluded.last_update,
        )
        await self.db.execute(upsert)

        await self.db.execute(
            insert(VehicleTelemetryHistory).values(
                **values,
                timestamp=reading.timestamp,
                recorded_at=recorded_at,
            )
        )

    # ============== Current State ==============

    async def get_meter_state(self, meter_id: str) -> MeterCurrentState:
        """Latest state of a meter."""
        stmt = (
            select(MeterCurrentState)
            .where(MeterCurrentState.meter_id == meter_id)
            .execution_options(populate_existing=True)
        )
        with translate_storage_errors(StorageError, "get_meter_state", meter_id=meter_id):
            result = await self.db.execute(stmt)
            state = result.scalar_one_or_none()
        if state is None:
            raise NotFoundError("Meter", meter_id)
        return state

    async def get_vehicle_state(self, vehicle_id: str) -> VehicleCurrentState:
        """Latest state of a vehicle (SoC, battery temperature, ...)."""
        stmt = (
            select(VehicleCurrentState)
            .where(VehicleCurrentState.vehicle_id == vehicle_id)
            .execution_options(populate_existing=True)
        )
        with translate_storage_errors(StorageError, "get_vehicle_state", vehicle_id=vehicle_id):
            result = await self.db.execute(stmt)
            state = result.scalar_one_or_none()
        if state is None:
            raise NotFoundError("Vehicle", vehicle_id)
        return state

    async def list_meter_states(self) -> Sequence[MeterCurrentState]:
        """All meter states, most recently active first."""
        stmt = (
            select(MeterCurrentState)
            .order_by(MeterCurrentState.last_update.desc(), MeterCurrentState.meter_id)
            .execution_options(populate_existing=True)
        )
        with translate_storage_errors(StorageError, "list_meter_states"):
            result = await self.db.execute(stmt)
            return result.scalars().all()

    async def list_vehicle_states(self) -> Sequence[VehicleCurrentState]:
        """All vehicle states, most recently active first."""
        stmt = (
            select(VehicleCurrentState)
            .order_by(VehicleCurrentState.last_update.desc(), VehicleCurrentState.vehicle_id)
            .execution_options(populate_existing=True)
        )
        with translate_storage_errors(StorageError, "list_vehicle_states"):
            result = await self.db.execute(stmt)
            return result.scalars().all()

    # ============== History ==============

    async def get_meter_history(
        self,
        meter_id: str,
        start_time: datetime,
        end_time: datetime,
        limit: int = 1000,
    ) -> Sequence[MeterTelemetryHistory]:
        """Meter readings in [start_time, end_time], newest first."""
        start_time, end_time = _check_range(start_time, end_time, limit)
        stmt = (
            select(MeterTelemetryHistory)
            .where(
                MeterTelemetryHistory.meter_id == meter_id,
                MeterTelemetryHistory.timestamp >= start_time,
                MeterTelemetryHistory.timestamp <= end_time,
            )
            .order_by(MeterTelemetryHistory.timestamp.desc(), MeterTelemetryHistory.id.desc())
            .limit(limit)
        )
        with translate_storage_errors(StorageError, "get_meter_history", meter_id=meter_id):
            result = await self.db.execute(stmt)
            return result.scalars().all()

    async def get_vehicle_history(
        self,
        vehicle_id: str,
        start_time: datetime,
        end_time: datetime,
        limit: int = 1000,
    ) -> Sequence[VehicleTelemetryHistory]:
        """Vehicle readings in [start_time, end_time], newest first."""
        start_time, end_time = _check_range(start_time, end_time, limit)
        stmt = (
            select(VehicleTelemetryHistory)
            .where(
                VehicleTelemetryHistory.vehicle_id == vehicle_id,
                VehicleTelemetryHistory.timestamp >= start_time,
                VehicleTelemetryHistory.timestamp <= end_time,
            )
            .order_by(VehicleTelemetryHistory.timestamp.desc(), VehicleTelemetryHistory.id.desc())
            .limit(limit)
        )
        with translate_storage_errors(StorageError, "get_vehicle_history", vehicle_id=vehicle_id):
            result = await self.db.execute(stmt)
            return result.scalars().all()


def _check_range(start_time: datetime, end_time: datetime, limit: int) -> tuple[datetime, datetime]:
    start_time, end_time = ensure_utc(start_time), ensure_utc(end_time)
    if start_time > end_time:
        raise ValidationError(
            "start_time must not be after end_time",
            details={"start_time": start_time.isoformat(), "end_time": end_time.isoformat()},
        )
    if not 1 <= limit <= MAX_HISTORY_LIMIT:
        raise ValidationError(
            f"limit must be between 1 and {MAX_HISTORY_LIMIT}",
            details={"limit": limit},
        )
    return start_time, end_time
