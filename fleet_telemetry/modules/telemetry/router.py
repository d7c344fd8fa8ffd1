"""
Telemetry Module - API Router

Endpoints:
- POST /api/v1/telemetry/meter, /vehicle - Ingest a single reading
- POST /api/v1/telemetry/meter/batch, /vehicle/batch - Ingest a batch
- GET /api/v1/telemetry/meter/{id}/current, /vehicle/{id}/current - Current state
- GET /api/v1/telemetry/meters/current, /vehicles/current - All current states
- GET /api/v1/telemetry/meter/{id}/history, /vehicle/{id}/history - History range
"""
from datetime import datetime, timedelta

from fastapi import APIRouter, Query, status

from fleet_telemetry.core.logging import get_logger
from fleet_telemetry.core.models import utc_now
from fleet_telemetry.modules.telemetry.dependencies import TelemetryServiceDep
from fleet_telemetry.modules.telemetry.schemas import (
    IngestionResponse,
    MeterHistoryResponse,
    MeterReadingBatch,
    MeterReadingInput,
    MeterStateListResponse,
    MeterStateResponse,
    VehicleHistoryResponse,
    VehicleReadingBatch,
    VehicleReadingInput,
    VehicleStateListResponse,
    VehicleStateResponse,
)
from fleet_telemetry.modules.telemetry.service import MAX_HISTORY_LIMIT

logger = get_logger(__name__)

router = APIRouter(prefix="/telemetry", tags=["Telemetry"])


# ============== Ingestion ==============

@router.post(
    "/meter",
    response_model=IngestionResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def ingest_meter(
    data: MeterReadingInput,
    service: TelemetryServiceDep,
) -> IngestionResponse:
    """Ingest a single meter reading."""
    count = await service.ingest_meter(data)
    return IngestionResponse(message="Meter data ingested successfully", count=count)


@router.post(
    "/vehicle",
    response_model=IngestionResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def ingest_vehicle(
    data: VehicleReadingInput,
    service: TelemetryServiceDep,
) -> IngestionResponse:
    """Ingest a single vehicle reading."""
    count = await service.ingest_vehicle(data)
    return IngestionResponse(message="Vehicle data ingested successfully", count=count)


@router.post(
    "/meter/batch",
    response_model=IngestionResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def batch_ingest_meter(
    batch: MeterReadingBatch,
    service: TelemetryServiceDep,
) -> IngestionResponse:
    """
    Ingest meter readings in order.

    The whole batch is rejected if any reading is invalid. Each reading is
    committed on its own; a storage failure reports how many were recorded.
    """
    logger.info("Batch meter ingest", count=len(batch.data))
    count = await service.batch_ingest_meter(batch.data)
    return IngestionResponse(message=f"{count} meter records ingested", count=count)


@router.post(
    "/vehicle/batch",
    response_model=IngestionResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def batch_ingest_vehicle(
    batch: VehicleReadingBatch,
    service: TelemetryServiceDep,
) -> IngestionResponse:
    """Ingest vehicle readings in order."""
    logger.info("Batch vehicle ingest", count=len(batch.data))
    count = await service.batch_ingest_vehicle(batch.data)
    return IngestionResponse(message=f"{count} vehicle records ingested", count=count)


# ============== Current State ==============

@router.get("/meter/{meter_id}/current", response_model=MeterStateResponse)
async def get_meter_state(
    meter_id: str,
    service: TelemetryServiceDep,
) -> MeterStateResponse:
    """Get the latest state of a meter."""
    state = await service.get_meter_state(meter_id)
    return MeterStateResponse.model_validate(state)


@router.get("/vehicle/{vehicle_id}/current", response_model=VehicleStateResponse)
async def get_vehicle_state(
    vehicle_id: str,
    service: TelemetryServiceDep,
) -> VehicleStateResponse:
    """Get the latest state of a vehicle."""
    state = await service.get_vehicle_state(vehicle_id)
    return VehicleStateResponse.model_validate(state)


@router.get("/meters/current", response_model=MeterStateListResponse)
async def list_meter_states(service: TelemetryServiceDep) -> MeterStateListResponse:
    """List all meter states, most recently active first."""
    states = await service.list_meter_states()
    return MeterStateListResponse(
        count=len(states),
        data=[MeterStateResponse.model_validate(s) for s in states],
    )


@router.get("/vehicles/current", response_model=VehicleStateListResponse)
async def list_vehicle_states(service: TelemetryServiceDep) -> VehicleStateListResponse:
    """List all vehicle states, most recently active first."""
    states = await service.list_vehicle_states()
    return VehicleStateListResponse(
        count=len(states),
        data=[VehicleStateResponse.model_validate(s) for s in states],
    )


# ============== History ==============

@router.get("/meter/{meter_id}/history", response_model=list[MeterHistoryResponse])
async def get_meter_history(
    meter_id: str,
    service: TelemetryServiceDep,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
    limit: int = Query(default=1000, ge=1, le=MAX_HISTORY_LIMIT),
) -> list[MeterHistoryResponse]:
    """Meter readings in a time range (default: last 24 hours), newest first."""
    end_time = end_time or utc_now()
    start_time = start_time or end_time - timedelta(hours=24)
    rows = await service.get_meter_history(meter_id, start_time, end_time, limit)
    return [MeterHistoryResponse.model_validate(r) for r in rows]


@router.get("/vehicle/{vehicle_id}/history", response_model=list[VehicleHistoryResponse])
async def get_vehicle_history(
    vehicle_id: str,
    service: TelemetryServiceDep,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
    limit: int = Query(default=1000, ge=1, le=MAX_HISTORY_LIMIT),
) -> list[VehicleHistoryResponse]:
    """Vehicle readings in a time range (default: last 24 hours), newest first."""
    end_time = end_time or utc_now()
    start_time = start_time or end_time - timedelta(hours=24)
    rows = await service.get_vehicle_history(vehicle_id, start_time, end_time, limit)
    return [VehicleHistoryResponse.model_validate(r) for r in rows]
