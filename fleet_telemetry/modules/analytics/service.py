"""
Analytics Module - Efficiency Analytics Engine

Efficiency = DC energy delivered into a vehicle's battery / AC energy drawn
by the vehicle's charging meter, over the 24 hours ending at `end_time`.

Thresholds:
    >= 85 %   optimal
    75 - 85 % degraded
    < 75 %    critical

`end_time` is always explicit here; the HTTP layer supplies "now" when the
caller omits it.
"""
import math
import time
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_telemetry.core.database import translate_storage_errors
from fleet_telemetry.core.exceptions import NotFoundError, StorageError, ValidationError
from fleet_telemetry.core.logging import get_logger
from fleet_telemetry.core.metrics import observe_analytics, update_status_breakdown
from fleet_telemetry.core.models import ensure_utc
from fleet_telemetry.modules.analytics.schemas import (
    AnomalyEntry,
    EfficiencyStatus,
    FleetSummary,
    PerformanceReport,
    StatusBreakdown,
)
from fleet_telemetry.modules.registry.service import RegistryService
from fleet_telemetry.modules.telemetry.models import (
    MeterTelemetryHistory,
    VehicleCurrentState,
    VehicleTelemetryHistory,
)

logger = get_logger(__name__)

WINDOW = timedelta(hours=24)
EXPECTED_READINGS = 1440  # one reading per minute over the window

OPTIMAL_THRESHOLD_PCT = 85.0
DEGRADED_THRESHOLD_PCT = 75.0

STATUS_MESSAGES = {
    EfficiencyStatus.OPTIMAL: "Normal AC-to-DC conversion efficiency",
    EfficiencyStatus.DEGRADED: "Charger inefficiency detected - schedule maintenance",
    EfficiencyStatus.CRITICAL: "CRITICAL: Hardware fault or energy leakage - immediate inspection required",
}

NO_VEHICLES_ALERT = "No vehicles found - ingest vehicle telemetry first"


class SkipReason:
    """Why a known vehicle has no performance report."""
    NO_MAPPING = "no_mapping"
    NO_DATA = "no_data"


def round_half_up(value: float, places: int) -> float:
    """Round like a decimal display would (2.675 -> 2.68)."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def classify_efficiency(efficiency_pct: float) -> tuple[EfficiencyStatus, str]:
    """Map an efficiency percentage to its status and fixed message."""
    if efficiency_pct >= OPTIMAL_THRESHOLD_PCT:
        status = EfficiencyStatus.OPTIMAL
    elif efficiency_pct >= DEGRADED_THRESHOLD_PCT:
        status = EfficiencyStatus.DEGRADED
    else:
        status = EfficiencyStatus.CRITICAL
    return status, STATUS_MESSAGES[status]


def window_bounds(end_time: datetime) -> tuple[datetime, datetime]:
    """Inclusive [end_time - 24h, end_time] window in UTC."""
    end_time = ensure_utc(end_time)
    return end_time - WINDOW, end_time


@dataclass(frozen=True)
class VehicleWindowStats:
    """Vehicle history aggregated over a window."""
    total_dc: float
    avg_temp: float
    reading_count: int


@dataclass(frozen=True)
class VehicleOutcome:
    """Per-vehicle result of a fleet evaluation."""
    vehicle_id: str
    report: PerformanceReport | None = None
    skip_reason: str | None = None

    @property
    def evaluated(self) -> bool:
        return self.report is not None


def build_performance_report(
    vehicle_id: str,
    meter_id: str,
    window_start: datetime,
    window_end: datetime,
    total_ac: float,
    stats: VehicleWindowStats,
) -> PerformanceReport:
    """Derive efficiency figures and status from the window aggregates."""
    total_ac = round_half_up(total_ac, 3)
    total_dc = round_half_up(stats.total_dc, 3)

    ratio = total_dc / total_ac if total_ac > 0 else 0.0
    efficiency_pct = round_half_up(ratio * 100, 2)
    status, message = classify_efficiency(efficiency_pct)

    return PerformanceReport(
        vehicle_id=vehicle_id,
        meter_id=meter_id,
        time_range_start=window_start,
        time_range_end=window_end,
        total_ac_consumed=total_ac,
        total_dc_delivered=total_dc,
        efficiency_ratio=round_half_up(ratio, 4),
        efficiency_pct=efficiency_pct,
        energy_loss=round_half_up(total_ac - total_dc, 3),
        avg_battery_temp=round_half_up(stats.avg_temp, 2),
        reading_count=stats.reading_count,
        expected_readings=EXPECTED_READINGS,
        completeness=round_half_up(stats.reading_count / EXPECTED_READINGS * 100, 2),
        status=status,
        status_message=message,
    )


class AnalyticsService:
    """AC-to-DC efficiency analytics over the telemetry history."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.registry = RegistryService(db)

    # ============== Aggregates ==============

    async def _meter_ac_totals(
        self,
        start: datetime,
        end: datetime,
        meter_id: str | None = None,
    ) -> dict[str, float]:
        """Sum of AC energy per meter within the window."""
        stmt = (
            select(
                MeterTelemetryHistory.meter_id,
                func.sum(MeterTelemetryHistory.ac_energy_consumed_kwh),
            )
            .where(
                MeterTelemetryHistory.timestamp >= start,
                MeterTelemetryHistory.timestamp <= end,
            )
            .group_by(MeterTelemetryHistory.meter_id)
        )
        if meter_id is not None:
            stmt = stmt.where(MeterTelemetryHistory.meter_id == meter_id)

        with translate_storage_errors(StorageError, "meter_ac_totals", meter_id=meter_id or "*"):
            result = await self.db.execute(stmt)
            return {row_meter: float(total or 0) for row_meter, total in result.all()}

    async def _vehicle_window_stats(
        self,
        start: datetime,
        end: datetime,
        vehicle_id: str | None = None,
    ) -> dict[str, VehicleWindowStats]:
        """DC sum, average temperature and reading count per vehicle within the window."""
        stmt = (
            select(
                VehicleTelemetryHistory.vehicle_id,
                func.sum(VehicleTelemetryHistory.dc_energy_delivered_kwh),
                func.avg(VehicleTelemetryHistory.battery_temperature_c),
                func.count(VehicleTelemetryHistory.id),
            )
            .where(
                VehicleTelemetryHistory.timestamp >= start,
                VehicleTelemetryHistory.timestamp <= end,
            )
            .group_by(VehicleTelemetryHistory.vehicle_id)
        )
        if vehicle_id is not None:
            stmt = stmt.where(VehicleTelemetryHistory.vehicle_id == vehicle_id)

        with translate_storage_errors(StorageError, "vehicle_window_stats", vehicle_id=vehicle_id or "*"):
            result = await self.db.execute(stmt)
            return {
                row_vehicle: VehicleWindowStats(
                    total_dc=float(total_dc or 0),
                    avg_temp=float(avg_temp or 0),
                    reading_count=int(count or 0),
                )
                for row_vehicle, total_dc, avg_temp, count in result.all()
            }

    async def _known_vehicle_ids(self) -> list[str]:
        """Vehicles with a current state, whether or not their data is recent."""
        stmt = select(VehicleCurrentState.vehicle_id).order_by(VehicleCurrentState.vehicle_id)
        with translate_storage_errors(StorageError, "known_vehicle_ids"):
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

    # ============== Per Vehicle ==============

    async def get_vehicle_performance(
        self,
        vehicle_id: str,
        end_time: datetime,
    ) -> PerformanceReport:
        """
        24 hour AC-to-DC performance of a vehicle.

        Raises:
            NotFoundError: the vehicle has no associated meter, or no readings
                in the window. Zero AC with DC present is a valid 0 % result.
        """
        started = time.perf_counter()
        window_start, window_end = window_bounds(end_time)

        meter_id = await self.registry.get_meter_for_vehicle(vehicle_id)

        stats = (await self._vehicle_window_stats(window_start, window_end, vehicle_id)).get(vehicle_id)
        if stats is None or stats.reading_count == 0:
            raise NotFoundError(
                "VehicleTelemetry",
                vehicle_id,
                reason=f"no readings between {window_start.isoformat()} and {window_end.isoformat()}",
            )

        total_ac = (await self._meter_ac_totals(window_start, window_end, meter_id)).get(meter_id, 0.0)
        report = build_performance_report(
            vehicle_id, meter_id, window_start, window_end, total_ac, stats
        )

        elapsed = time.perf_counter() - started
        observe_analytics("vehicle_performance", elapsed)
        logger.info(
            "Vehicle performance computed",
            vehicle_id=vehicle_id,
            meter_id=meter_id,
            total_ac=report.total_ac_consumed,
            total_dc=report.total_dc_delivered,
            efficiency_pct=report.efficiency_pct,
            status=report.status.value,
            duration_ms=round(elapsed * 1000, 2),
        )
        return report

    # ============== Fleet ==============

    async def evaluate_fleet(self, end_time: datetime) -> list[VehicleOutcome]:
        """
        Performance outcome for every known vehicle.

        One grouped query per device class covers the whole fleet. Vehicles
        without a mapping or without readings in the window are skipped with
        a reason; storage failures propagate.
        """
        window_start, window_end = window_bounds(end_time)

        vehicle_ids = await self._known_vehicle_ids()
        if not vehicle_ids:
            return []

        mappings = await self.registry.get_meters_for_vehicles(vehicle_ids)
        vehicle_stats = await self._vehicle_window_stats(window_start, window_end)
        meter_totals = await self._meter_ac_totals(window_start, window_end)

        outcomes: list[VehicleOutcome] = []
        for vehicle_id in vehicle_ids:
            meter_id = mappings.get(vehicle_id)
            if meter_id is None:
                outcomes.append(VehicleOutcome(vehicle_id, skip_reason=SkipReason.NO_MAPPING))
                continue

            stats = vehicle_stats.get(vehicle_id)
            if stats is None or stats.reading_count == 0:
                outcomes.append(VehicleOutcome(vehicle_id, skip_reason=SkipReason.NO_DATA))
                continue

            report = build_performance_report(
                vehicle_id,
                meter_id,
                window_start,
                window_end,
                meter_totals.get(meter_id, 0.0),
                stats,
            )
            outcomes.append(VehicleOutcome(vehicle_id, report=report))

        skipped = [o for o in outcomes if not o.evaluated]
        if skipped:
            logger.info(
                "Vehicles skipped in fleet evaluation",
                count=len(skipped),
                vehicles={o.vehicle_id: o.skip_reason for o in skipped},
            )
        return outcomes

    async def get_fleet_performance(self, end_time: datetime) -> FleetSummary:
        """Fleet-wide AC/DC totals, efficiency, status breakdown and critical alerts."""
        started = time.perf_counter()
        window_start, window_end = window_bounds(end_time)

        outcomes = await self.evaluate_fleet(window_end)
        if not outcomes:
            logger.info("Fleet performance requested with no known vehicles")
            return FleetSummary(
                alerts=[NO_VEHICLES_ALERT],
                time_range_start=window_start,
                time_range_end=window_end,
            )

        reports = [o.report for o in outcomes if o.report is not None]
        total_ac = sum(r.total_ac_consumed for r in reports)
        total_dc = sum(r.total_dc_delivered for r in reports)

        breakdown = StatusBreakdown(**Counter(r.status.value for r in reports))
        alerts = [
            f"CRITICAL: {r.vehicle_id} - {r.efficiency_pct:g}% efficiency"
            for r in reports
            if r.status == EfficiencyStatus.CRITICAL
        ]

        fleet_efficiency = round_half_up(total_dc / total_ac * 100, 2) if total_ac > 0 else 0.0

        summary = FleetSummary(
            total_vehicles=len(outcomes),
            evaluated_vehicles=len(reports),
            skipped_vehicles=len(outcomes) - len(reports),
            total_ac_consumed=round_half_up(total_ac, 3),
            total_dc_delivered=round_half_up(total_dc, 3),
            fleet_efficiency_pct=fleet_efficiency,
            status_breakdown=breakdown,
            alerts=alerts,
            time_range_start=window_start,
            time_range_end=window_end,
        )

        update_status_breakdown(breakdown.model_dump())
        elapsed = time.perf_counter() - started
        observe_analytics("fleet_performance", elapsed)
        logger.info(
            "Fleet performance computed",
            total_vehicles=summary.total_vehicles,
            evaluated=summary.evaluated_vehicles,
            fleet_efficiency_pct=fleet_efficiency,
            critical=breakdown.critical,
            duration_ms=round(elapsed * 1000, 2),
        )
        return summary

    async def detect_anomalies(
        self,
        threshold_pct: float,
        end_time: datetime,
    ) -> list[AnomalyEntry]:
        """Vehicles whose efficiency is below `threshold_pct`, worst first."""
        if not math.isfinite(threshold_pct) or threshold_pct < 0:
            raise ValidationError(
                "threshold must be a non-negative percentage",
                details={"threshold": threshold_pct},
            )

        started = time.perf_counter()
        outcomes = await self.evaluate_fleet(end_time)

        anomalies = [
            AnomalyEntry(
                vehicle_id=o.report.vehicle_id,
                meter_id=o.report.meter_id,
                efficiency_pct=o.report.efficiency_pct,
                status=o.report.status,
                energy_loss=o.report.energy_loss,
            )
            for o in outcomes
            if o.report is not None and o.report.efficiency_pct < threshold_pct
        ]
        anomalies.sort(key=lambda a: (a.efficiency_pct, a.vehicle_id))

        elapsed = time.perf_counter() - started
        observe_analytics("detect_anomalies", elapsed)
        logger.info(
            "Anomaly scan completed",
            threshold=threshold_pct,
            anomalies=len(anomalies),
            duration_ms=round(elapsed * 1000, 2),
        )
        return anomalies
