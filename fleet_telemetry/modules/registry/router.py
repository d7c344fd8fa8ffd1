"""
Registry Module - API Router
"""
from fastapi import APIRouter, status

from fleet_telemetry.modules.registry.dependencies import RegistryServiceDep
from fleet_telemetry.modules.registry.schemas import (
    MappingCreate,
    MappingResponse,
    MeterVehiclesResponse,
)

router = APIRouter(prefix="/registry", tags=["Registry"])


@router.post(
    "/mappings",
    response_model=MappingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def assign_vehicle(
    data: MappingCreate,
    service: RegistryServiceDep,
) -> MappingResponse:
    """Assign a vehicle to the meter that charges it."""
    mapping = await service.assign(data.vehicle_id, data.meter_id)
    return MappingResponse.model_validate(mapping)


@router.get("/mappings", response_model=list[MappingResponse])
async def list_mappings(service: RegistryServiceDep) -> list[MappingResponse]:
    """List all vehicle to meter associations."""
    mappings = await service.list_mappings()
    return [MappingResponse.model_validate(m) for m in mappings]


@router.get("/vehicles/{vehicle_id}/meter", response_model=MappingResponse)
async def get_vehicle_meter(
    vehicle_id: str,
    service: RegistryServiceDep,
) -> MappingResponse:
    """Get the meter associated with a vehicle."""
    mapping = await service.require_mapping(vehicle_id)
    return MappingResponse.model_validate(mapping)


@router.get("/meters/{meter_id}/vehicles", response_model=MeterVehiclesResponse)
async def list_meter_vehicles(
    meter_id: str,
    service: RegistryServiceDep,
) -> MeterVehiclesResponse:
    """List the vehicles charged by a meter."""
    vehicle_ids = await service.list_vehicles_for_meter(meter_id)
    return MeterVehiclesResponse(meter_id=meter_id, vehicle_ids=vehicle_ids)
