"""
Registry Module - Service Layer

Resolves the meter that charges a vehicle, so AC draw can be correlated
with DC delivery. Mappings are assigned once and read-only afterwards.
"""
from collections.abc import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_telemetry.core.database import translate_storage_errors
from fleet_telemetry.core.exceptions import (
    ConflictError,
    IngestionError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from fleet_telemetry.core.logging import get_logger
from fleet_telemetry.core.models import utc_now
from fleet_telemetry.modules.registry.models import VehicleMeterMapping

logger = get_logger(__name__)


class RegistryService:
    """Vehicle/meter association registry."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_mapping(self, vehicle_id: str) -> VehicleMeterMapping | None:
        stmt = select(VehicleMeterMapping).where(VehicleMeterMapping.vehicle_id == vehicle_id)
        with translate_storage_errors(StorageError, "get_mapping", vehicle_id=vehicle_id):
            result = await self.db.execute(stmt)
            return result.scalar_one_or_none()

    async def require_mapping(self, vehicle_id: str) -> VehicleMeterMapping:
        """
        Mapping of a vehicle.

        Raises:
            NotFoundError: the vehicle has no mapping. Analytics must never
                treat an unmapped vehicle as zero AC consumption.
        """
        mapping = await self.get_mapping(vehicle_id)
        if mapping is None:
            raise NotFoundError("VehicleMeterMapping", vehicle_id, reason="no associated meter")
        return mapping

    async def get_meter_for_vehicle(self, vehicle_id: str) -> str:
        """Meter associated with a vehicle."""
        mapping = await self.require_mapping(vehicle_id)
        return mapping.meter_id

    async def get_meters_for_vehicles(self, vehicle_ids: Iterable[str]) -> dict[str, str]:
        """Bulk lookup: vehicle_id -> meter_id for the mapped vehicles only."""
        ids = list(vehicle_ids)
        if not ids:
            return {}
        stmt = select(VehicleMeterMapping.vehicle_id, VehicleMeterMapping.meter_id).where(
            VehicleMeterMapping.vehicle_id.in_(ids)
        )
        with translate_storage_errors(StorageError, "get_meters_for_vehicles", count=len(ids)):
            result = await self.db.execute(stmt)
            return {vehicle_id: meter_id for vehicle_id, meter_id in result.all()}

    async def list_mappings(self) -> Sequence[VehicleMeterMapping]:
        stmt = select(VehicleMeterMapping).order_by(VehicleMeterMapping.vehicle_id)
        with translate_storage_errors(StorageError, "list_mappings"):
            result = await self.db.execute(stmt)
            return result.scalars().all()

    async def list_vehicles_for_meter(self, meter_id: str) -> list[str]:
        stmt = (
            select(VehicleMeterMapping.vehicle_id)
            .where(VehicleMeterMapping.meter_id == meter_id)
            .order_by(VehicleMeterMapping.vehicle_id)
        )
        with translate_storage_errors(StorageError, "list_vehicles_for_meter", meter_id=meter_id):
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

    async def assign(self, vehicle_id: str, meter_id: str) -> VehicleMeterMapping:
        """
        Associate a vehicle with its meter.

        Re-assigning the same meter is a no-op; a different meter raises
        ConflictError.
        """
        vehicle_id, meter_id = vehicle_id.strip(), meter_id.strip()
        if not vehicle_id or not meter_id:
            raise ValidationError(
                "vehicle_id and meter_id must be non-empty",
                details={"vehicle_id": vehicle_id, "meter_id": meter_id},
            )

        existing = await self.get_mapping(vehicle_id)
        if existing is not None:
            if existing.meter_id != meter_id:
                raise ConflictError(
                    f"Vehicle '{vehicle_id}' is already assigned to meter '{existing.meter_id}'",
                    details={
                        "vehicle_id": vehicle_id,
                        "meter_id": existing.meter_id,
                        "requested_meter_id": meter_id,
                    },
                )
            return existing

        mapping = VehicleMeterMapping(
            vehicle_id=vehicle_id,
            meter_id=meter_id,
            assigned_at=utc_now(),
        )
        self.db.add(mapping)
        try:
            await self.db.commit()
        except IntegrityError as e:
            # Concurrent assignment of the same vehicle
            await self.db.rollback()
            raise ConflictError(
                f"Vehicle '{vehicle_id}' was assigned concurrently",
                details={"vehicle_id": vehicle_id},
            ) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Mapping assignment failed",
                vehicle_id=vehicle_id,
                meter_id=meter_id,
                error=str(e),
            )
            raise IngestionError(
                f"Failed to assign vehicle '{vehicle_id}' to meter '{meter_id}'",
                details={"vehicle_id": vehicle_id, "meter_id": meter_id},
            ) from e

        logger.info("Vehicle assigned to meter", vehicle_id=vehicle_id, meter_id=meter_id)
        return mapping
