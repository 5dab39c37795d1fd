"""Tests for fleetwatch/models/vehicle.py and fleetwatch/models/summary.py."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from fleetwatch.models.summary import CleanupResult, RunSummary
from fleetwatch.models.vehicle import DEFAULT_CONTRACT, ApiSource, Vehicle, VehicleStatus

TS = datetime(2025, 3, 4, 10, 15, 0, tzinfo=timezone.utc)


def make_vehicle(**overrides) -> Vehicle:
    fields = {
        "id": "COL-359710045",
        "plate": "ABC123",
        "source": ApiSource.COLTRACK,
        "last_update": TS,
    }
    fields.update(overrides)
    return Vehicle(**fields)


class TestVehicle:
    def test_defaults(self):
        vehicle = make_vehicle()
        assert vehicle.speed == 0.0
        assert vehicle.status == VehicleStatus.STOPPED
        assert vehicle.contract == DEFAULT_CONTRACT
        assert vehicle.ignition is None
        assert vehicle.event == ""

    def test_is_frozen(self):
        vehicle = make_vehicle()
        with pytest.raises(ValidationError):
            vehicle.speed = 120

    def test_negative_speed_rejected(self):
        with pytest.raises(ValidationError):
            make_vehicle(speed=-5)

    def test_last_update_required(self):
        with pytest.raises(ValidationError):
            Vehicle(id="COL-1", plate="ABC123", source=ApiSource.COLTRACK)

    def test_invalid_source_rejected(self):
        with pytest.raises(ValidationError):
            make_vehicle(source="geotab")


class TestRunSummary:
    def test_total_vehicles(self):
        summary = RunSummary(
            started_at=TS,
            vehicles_fetched={ApiSource.COLTRACK: 12, ApiSource.FAGOR: 3},
        )
        assert summary.total_vehicles == 15

    def test_counters_start_at_zero(self):
        summary = RunSummary(started_at=TS)
        assert summary.total_vehicles == 0
        assert summary.alerts_saved == 0
        assert summary.rejected_critical == 0
        assert summary.source_errors == {}


class TestCleanupResult:
    def test_success_without_errors(self):
        assert CleanupResult(deleted_alerts=4).success is True

    def test_failure_with_errors(self):
        assert CleanupResult(errors=["boom"]).success is False
