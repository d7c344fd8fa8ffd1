"""
Efficiency Analytics Tests.
"""
import math
from datetime import datetime, timedelta

import pytest

from fleet_telemetry.core.exceptions import NotFoundError, ValidationError
from fleet_telemetry.modules.analytics.schemas import EfficiencyStatus
from fleet_telemetry.modules.analytics.service import (
    EXPECTED_READINGS,
    NO_VEHICLES_ALERT,
    SkipReason,
    classify_efficiency,
    round_half_up,
    window_bounds,
)


async def seed(
    telemetry,
    window_end: datetime,
    vehicle_id: str,
    meter_id: str | None,
    ac: float | None,
    dc: float,
    minutes: int = 3,
    offset: timedelta = timedelta(minutes=30),
    temp: float = 30.0,
) -> None:
    """Ingest `minutes` per-minute readings for a vehicle and, optionally, its meter."""
    start = window_end - offset
    if meter_id is not None and ac is not None:
        await telemetry.batch_ingest_meter([
            {
                "meterId": meter_id,
                "acEnergyConsumedKwh": ac,
                "voltage": 230.0,
                "timestamp": start + timedelta(minutes=i),
            }
            for i in range(minutes)
        ])
    await telemetry.batch_ingest_vehicle([
        {
            "vehicleId": vehicle_id,
            "stateOfCharge": 50.0 + i,
            "dcEnergyDeliveredKwh": dc,
            "batteryTemperatureC": temp,
            "timestamp": start + timedelta(minutes=i),
        }
        for i in range(minutes)
    ])


class TestClassification:
    """Status thresholds and rounding."""

    @pytest.mark.parametrize(
        ("pct", "expected"),
        [
            (100.0, EfficiencyStatus.OPTIMAL),
            (85.0, EfficiencyStatus.OPTIMAL),
            (84.99, EfficiencyStatus.DEGRADED),
            (75.0, EfficiencyStatus.DEGRADED),
            (74.99, EfficiencyStatus.CRITICAL),
            (0.0, EfficiencyStatus.CRITICAL),
        ],
    )
    def test_boundaries(self, pct, expected):
        """Test 85 and 75 are inclusive lower bounds."""
        status, message = classify_efficiency(pct)
        assert status == expected
        assert message

    def test_messages(self):
        """Test fixed status messages."""
        assert classify_efficiency(90)[1] == "Normal AC-to-DC conversion efficiency"
        assert classify_efficiency(80)[1] == "Charger inefficiency detected - schedule maintenance"
        assert classify_efficiency(50)[1] == (
            "CRITICAL: Hardware fault or energy leakage - immediate inspection required"
        )

    def test_round_half_up(self):
        """Test halves round away from zero."""
        assert round_half_up(2.675, 2) == 2.68
        assert round_half_up(0.0005, 3) == 0.001
        assert round_half_up(79.99999999999999, 2) == 80.0

    def test_window_bounds(self, window_end):
        """Test the window spans the 24 hours ending at end_time."""
        start, end = window_bounds(window_end.replace(tzinfo=None))
        assert end == window_end
        assert end - start == timedelta(hours=24)


class TestVehiclePerformance:
    """Per-vehicle efficiency."""

    @pytest.mark.asyncio
    async def test_degraded_scenario(self, telemetry_service, registry_service, analytics_service, window_end):
        """Test 1.5 kWh AC vs 1.2 kWh DC is 80 % and degraded."""
        await registry_service.assign("VEHICLE-001", "METER-001")
        await seed(telemetry_service, window_end, "VEHICLE-001", "METER-001", ac=0.5, dc=0.4, temp=32.0)

        report = await analytics_service.get_vehicle_performance("VEHICLE-001", window_end)

        assert report.meter_id == "METER-001"
        assert report.total_ac_consumed == pytest.approx(1.5)
        assert report.total_dc_delivered == pytest.approx(1.2)
        assert report.efficiency_ratio == pytest.approx(0.8)
        assert report.efficiency_pct == pytest.approx(80.0)
        assert report.energy_loss == pytest.approx(0.3)
        assert report.status == EfficiencyStatus.DEGRADED
        assert report.avg_battery_temp == pytest.approx(32.0)
        assert report.reading_count == 3
        assert report.expected_readings == EXPECTED_READINGS
        assert report.completeness == pytest.approx(0.21)
        assert report.time_range_end == window_end
        assert report.time_range_start == window_end - timedelta(hours=24)

    @pytest.mark.asyncio
    async def test_ratio_uses_rounded_totals(self, telemetry_service, registry_service, analytics_service, window_end):
        """Test the ratio is DC / AC of the reported 3 dp totals, rounded to 4 dp."""
        await registry_service.assign("VEHICLE-001", "METER-001")
        await seed(telemetry_service, window_end, "VEHICLE-001", "METER-001", ac=0.7, dc=0.6)

        report = await analytics_service.get_vehicle_performance("VEHICLE-001", window_end)

        assert report.total_ac_consumed == 2.1
        assert report.total_dc_delivered == 1.8
        assert report.efficiency_ratio == 0.8571
        assert report.efficiency_ratio == round(report.total_dc_delivered / report.total_ac_consumed, 4)
        assert report.efficiency_pct == 85.71

    @pytest.mark.asyncio
    async def test_zero_ac_gives_zero_ratio(self, telemetry_service, registry_service, analytics_service, window_end):
        """Test no AC consumption yields 0 instead of a division error."""
        await registry_service.assign("VEHICLE-001", "METER-001")
        await seed(telemetry_service, window_end, "VEHICLE-001", None, ac=None, dc=0.4)

        report = await analytics_service.get_vehicle_performance("VEHICLE-001", window_end)

        assert report.total_ac_consumed == 0.0
        assert report.efficiency_ratio == 0.0
        assert report.efficiency_pct == 0.0
        assert math.isfinite(report.efficiency_ratio)
        assert report.status == EfficiencyStatus.CRITICAL

    @pytest.mark.asyncio
    async def test_unmapped_vehicle(self, telemetry_service, analytics_service, window_end):
        """Test a vehicle without a meter is NotFound, not zero AC."""
        await seed(telemetry_service, window_end, "VEHICLE-001", None, ac=None, dc=0.4)
        with pytest.raises(NotFoundError):
            await analytics_service.get_vehicle_performance("VEHICLE-001", window_end)

    @pytest.mark.asyncio
    async def test_no_readings_in_window(self, telemetry_service, registry_service, analytics_service, window_end):
        """Test a vehicle with no readings in the window is NotFound."""
        await registry_service.assign("VEHICLE-001", "METER-001")
        await seed(
            telemetry_service, window_end, "VEHICLE-001", "METER-001",
            ac=0.5, dc=0.4, offset=timedelta(hours=30),
        )
        with pytest.raises(NotFoundError):
            await analytics_service.get_vehicle_performance("VEHICLE-001", window_end)

    @pytest.mark.asyncio
    async def test_window_is_inclusive(self, telemetry_service, registry_service, analytics_service, window_end):
        """Test readings exactly on both window edges count; others do not."""
        await registry_service.assign("VEHICLE-001", "METER-001")
        timestamps = [
            window_end - timedelta(hours=24, minutes=1),
            window_end - timedelta(hours=24),
            window_end,
            window_end + timedelta(minutes=1),
        ]
        await telemetry_service.batch_ingest_vehicle([
            {
                "vehicleId": "VEHICLE-001",
                "stateOfCharge": 50.0,
                "dcEnergyDeliveredKwh": 1.0,
                "batteryTemperatureC": 25.0,
                "timestamp": ts,
            }
            for ts in timestamps
        ])
        await telemetry_service.batch_ingest_meter([
            {"meterId": "METER-001", "acEnergyConsumedKwh": 1.0, "voltage": 230.0, "timestamp": ts}
            for ts in timestamps
        ])

        report = await analytics_service.get_vehicle_performance("VEHICLE-001", window_end)
        assert report.reading_count == 2
        assert report.total_dc_delivered == pytest.approx(2.0)
        assert report.total_ac_consumed == pytest.approx(2.0)
        assert report.status == EfficiencyStatus.OPTIMAL


@pytest.fixture
async def fleet(telemetry_service, registry_service, window_end):
    """Three evaluable vehicles plus one unmapped and one stale vehicle."""
    vehicles = [
        ("VEHICLE-A", "METER-A", 1.0, 0.9),  # 90 % optimal
        ("VEHICLE-B", "METER-B", 0.5, 0.4),  # 80 % degraded
        ("VEHICLE-C", "METER-C", 1.0, 0.6),  # 60 % critical
    ]
    for vehicle_id, meter_id, ac, dc in vehicles:
        await registry_service.assign(vehicle_id, meter_id)
        await seed(telemetry_service, window_end, vehicle_id, meter_id, ac=ac, dc=dc)

    await seed(telemetry_service, window_end, "VEHICLE-D", None, ac=None, dc=0.5)

    await registry_service.assign("VEHICLE-E", "METER-E")
    await seed(
        telemetry_service, window_end, "VEHICLE-E", "METER-E",
        ac=1.0, dc=0.1, offset=timedelta(hours=48),
    )


class TestFleetPerformance:
    """Fleet rollup."""

    @pytest.mark.asyncio
    async def test_no_vehicles(self, analytics_service, window_end):
        """Test an empty fleet returns a zeroed summary with one alert."""
        summary = await analytics_service.get_fleet_performance(window_end)

        assert summary.total_vehicles == 0
        assert summary.total_ac_consumed == 0.0
        assert summary.fleet_efficiency_pct == 0.0
        assert summary.alerts == [NO_VEHICLES_ALERT]
        assert summary.time_range_end == window_end

    @pytest.mark.asyncio
    async def test_rollup(self, fleet, analytics_service, window_end):
        """Test totals, breakdown, skips and alerts."""
        summary = await analytics_service.get_fleet_performance(window_end)

        assert summary.total_vehicles == 5
        assert summary.evaluated_vehicles == 3
        assert summary.skipped_vehicles == 2
        assert summary.total_ac_consumed == pytest.approx(7.5)
        assert summary.total_dc_delivered == pytest.approx(5.7)
        assert summary.fleet_efficiency_pct == pytest.approx(76.0)
        assert summary.status_breakdown.optimal == 1
        assert summary.status_breakdown.degraded == 1
        assert summary.status_breakdown.critical == 1
        assert summary.alerts == ["CRITICAL: VEHICLE-C - 60% efficiency"]

    @pytest.mark.asyncio
    async def test_rollup_matches_per_vehicle_reports(self, fleet, analytics_service, window_end):
        """Test fleet totals equal the sum of individual reports."""
        summary = await analytics_service.get_fleet_performance(window_end)

        reports = [
            await analytics_service.get_vehicle_performance(v, window_end)
            for v in ("VEHICLE-A", "VEHICLE-B", "VEHICLE-C")
        ]
        assert summary.total_ac_consumed == pytest.approx(sum(r.total_ac_consumed for r in reports))
        assert summary.total_dc_delivered == pytest.approx(sum(r.total_dc_delivered for r in reports))

    @pytest.mark.asyncio
    async def test_skip_reasons(self, fleet, analytics_service, window_end):
        """Test skipped vehicles carry an explicit reason."""
        outcomes = {o.vehicle_id: o for o in await analytics_service.evaluate_fleet(window_end)}

        assert outcomes["VEHICLE-D"].skip_reason == SkipReason.NO_MAPPING
        assert outcomes["VEHICLE-E"].skip_reason == SkipReason.NO_DATA
        assert outcomes["VEHICLE-A"].evaluated


class TestAnomalies:
    """Anomaly detection."""

    @pytest.mark.asyncio
    async def test_default_threshold(self, fleet, analytics_service, window_end):
        """Test vehicles below 85 % are listed worst first."""
        anomalies = await analytics_service.detect_anomalies(85.0, window_end)

        assert [a.vehicle_id for a in anomalies] == ["VEHICLE-C", "VEHICLE-B"]
        assert anomalies[0].efficiency_pct == pytest.approx(60.0)
        assert anomalies[0].status == EfficiencyStatus.CRITICAL
        assert anomalies[0].meter_id == "METER-C"
        assert anomalies[0].energy_loss == pytest.approx(1.2)

    @pytest.mark.asyncio
    async def test_threshold_is_exclusive(self, fleet, analytics_service, window_end):
        """Test a vehicle exactly at the threshold is not an anomaly."""
        anomalies = await analytics_service.detect_anomalies(80.0, window_end)
        assert [a.vehicle_id for a in anomalies] == ["VEHICLE-C"]

    @pytest.mark.asyncio
    async def test_high_threshold_lists_all_evaluated(self, fleet, analytics_service, window_end):
        """Test every evaluated vehicle is returned, sorted ascending."""
        anomalies = await analytics_service.detect_anomalies(100.0, window_end)

        pcts = [a.efficiency_pct for a in anomalies]
        assert [a.vehicle_id for a in anomalies] == ["VEHICLE-C", "VEHICLE-B", "VEHICLE-A"]
        assert pcts == sorted(pcts)

    @pytest.mark.asyncio
    async def test_zero_threshold(self, fleet, analytics_service, window_end):
        """Test a zero threshold finds nothing."""
        assert await analytics_service.detect_anomalies(0.0, window_end) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("threshold", [-1.0, float("nan"), float("inf")])
    async def test_invalid_threshold(self, analytics_service, window_end, threshold):
        """Test invalid thresholds are rejected."""
        with pytest.raises(ValidationError):
            await analytics_service.detect_anomalies(threshold, window_end)
