"""
Seed Data Script - sample fleet telemetry for development.

Creates 5 meters and 10 vehicles, assigns vehicles to meters round-robin and
ingests 24 hours of per-minute readings through the ingestion engine.
VEHICLE-007 charges at 65-70 % efficiency so the anomaly endpoints have
something to report.

Usage:
    python scripts/seed_data.py
"""
import asyncio
import random
from datetime import timedelta

from fleet_telemetry.core.database import async_session_maker, close_db, init_db
from fleet_telemetry.core.logging import configure_logging, get_logger
from fleet_telemetry.core.models import utc_now
from fleet_telemetry.modules.registry.service import RegistryService
from fleet_telemetry.modules.telemetry.service import TelemetryService

logger = get_logger(__name__)


# ==========================================
# SEED DATA CONFIGURATION
# ==========================================

METERS = 5
VEHICLES = 10
HOURS = 24
CHARGING_MINUTES = 45  # per hour; the remaining minutes are idle

FAULTY_VEHICLE = "VEHICLE-007"
BATTERY_CAPACITY_KWH = 75.0
AC_PER_VEHICLE_KWH = 0.5


def meter_ids() -> list[str]:
    return [f"METER-{i:03d}" for i in range(1, METERS + 1)]


def vehicle_ids() -> list[str]:
    return [f"VEHICLE-{i:03d}" for i in range(1, VEHICLES + 1)]


def meter_reading(meter_id: str, timestamp, charging: bool) -> dict:
    ac_kwh = 0.4 + random.random() * 0.2 if charging else 0.05 + random.random() * 0.05
    return {
        "meter_id": meter_id,
        "ac_energy_consumed_kwh": round(ac_kwh, 3),
        "voltage": round(238 + random.random() * 4, 2),
        "timestamp": timestamp,
    }


def vehicle_reading(vehicle_id: str, timestamp, charging: bool, soc: float) -> tuple[dict, float]:
    faulty = vehicle_id == FAULTY_VEHICLE
    efficiency = 0.65 + random.random() * 0.05 if faulty else 0.85 + random.random() * 0.07
    dc_kwh = AC_PER_VEHICLE_KWH * efficiency if charging else 0.0
    soc = min(100.0, soc + dc_kwh / BATTERY_CAPACITY_KWH * 100)

    if charging:
        temp = (35 if faulty else 25) + random.random() * 8
    else:
        temp = 22 + random.random() * 3

    reading = {
        "vehicle_id": vehicle_id,
        "state_of_charge": round(soc, 2),
        "dc_energy_delivered_kwh": round(dc_kwh, 3),
        "battery_temperature_c": round(temp, 2),
        "timestamp": timestamp,
    }
    return reading, soc


# ==========================================
# MAIN
# ==========================================

async def run_seed() -> None:
    await init_db()

    meters = meter_ids()
    vehicles = vehicle_ids()
    start = utc_now().replace(second=0, microsecond=0) - timedelta(hours=HOURS)
    soc = {vehicle_id: 50.0 for vehicle_id in vehicles}
    total = 0

    async with async_session_maker() as session:
        registry = RegistryService(session)
        telemetry = TelemetryService(session)

        for i, vehicle_id in enumerate(vehicles, start=1):
            meter_id = meters[i % METERS]
            await registry.assign(vehicle_id, meter_id)
            logger.info(
                "Vehicle assigned",
                vehicle_id=vehicle_id,
                meter_id=meter_id,
                faulty=vehicle_id == FAULTY_VEHICLE,
            )

        # One batch per device class per hour stays under the batch limit
        for hour in range(HOURS):
            meter_batch: list[dict] = []
            vehicle_batch: list[dict] = []
            for minute in range(60):
                timestamp = start + timedelta(hours=hour, minutes=minute)
                charging = minute < CHARGING_MINUTES
                meter_batch.extend(meter_reading(m, timestamp, charging) for m in meters)
                for vehicle_id in vehicles:
                    reading, soc[vehicle_id] = vehicle_reading(vehicle_id, timestamp, charging, soc[vehicle_id])
                    vehicle_batch.append(reading)

            total += await telemetry.batch_ingest_meter(meter_batch)
            total += await telemetry.batch_ingest_vehicle(vehicle_batch)
            logger.info("Hour seeded", hour=hour + 1, of=HOURS, readings=total)

    await close_db()
    logger.info(
        "Seed data complete",
        meters=len(meters),
        vehicles=len(vehicles),
        readings=total,
    )


if __name__ == "__main__":
    configure_logging()
    asyncio.run(run_seed())
