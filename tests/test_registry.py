"""
Vehicle/Meter Registry Tests.
"""
import pytest

from fleet_telemetry.core.exceptions import ConflictError, NotFoundError, ValidationError


class TestRegistryService:
    """Vehicle to meter association."""

    @pytest.mark.asyncio
    async def test_assign_and_resolve(self, registry_service):
        """Test an assigned vehicle resolves to its meter."""
        mapping = await registry_service.assign("VEHICLE-001", "METER-001")
        assert mapping.vehicle_id == "VEHICLE-001"
        assert mapping.meter_id == "METER-001"
        assert mapping.assigned_at is not None

        assert await registry_service.get_meter_for_vehicle("VEHICLE-001") == "METER-001"

    @pytest.mark.asyncio
    async def test_unmapped_vehicle(self, registry_service):
        """Test an unmapped vehicle raises NotFoundError."""
        with pytest.raises(NotFoundError) as exc_info:
            await registry_service.get_meter_for_vehicle("VEHICLE-404")
        assert "no associated meter" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_reassign_same_meter_is_idempotent(self, registry_service):
        """Test re-assigning the same meter returns the existing mapping."""
        first = await registry_service.assign("VEHICLE-001", "METER-001")
        second = await registry_service.assign("VEHICLE-001", "METER-001")
        assert second.assigned_at == first.assigned_at
        assert len(await registry_service.list_mappings()) == 1

    @pytest.mark.asyncio
    async def test_reassign_different_meter_conflicts(self, registry_service):
        """Test a vehicle cannot be moved to another meter."""
        await registry_service.assign("VEHICLE-001", "METER-001")
        with pytest.raises(ConflictError) as exc_info:
            await registry_service.assign("VEHICLE-001", "METER-002")
        assert exc_info.value.details["meter_id"] == "METER-001"
        assert await registry_service.get_meter_for_vehicle("VEHICLE-001") == "METER-001"

    @pytest.mark.asyncio
    async def test_blank_ids_rejected(self, registry_service):
        """Test blank identifiers are rejected."""
        with pytest.raises(ValidationError):
            await registry_service.assign("  ", "METER-001")

    @pytest.mark.asyncio
    async def test_meter_serves_many_vehicles(self, registry_service):
        """Test one meter may serve several vehicles."""
        for vehicle_id in ("VEHICLE-003", "VEHICLE-001", "VEHICLE-002"):
            await registry_service.assign(vehicle_id, "METER-001")
        await registry_service.assign("VEHICLE-004", "METER-002")

        assert await registry_service.list_vehicles_for_meter("METER-001") == [
            "VEHICLE-001",
            "VEHICLE-002",
            "VEHICLE-003",
        ]
        assert await registry_service.list_vehicles_for_meter("METER-999") == []

    @pytest.mark.asyncio
    async def test_bulk_lookup_skips_unmapped(self, registry_service):
        """Test bulk lookup only returns mapped vehicles."""
        await registry_service.assign("VEHICLE-001", "METER-001")
        await registry_service.assign("VEHICLE-002", "METER-002")

        result = await registry_service.get_meters_for_vehicles(["VEHICLE-001", "VEHICLE-002", "VEHICLE-003"])
        assert result == {"VEHICLE-001": "METER-001", "VEHICLE-002": "METER-002"}
        assert await registry_service.get_meters_for_vehicles([]) == {}
