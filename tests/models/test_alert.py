"""Tests for fleetwatch/models/alert.py."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from fleetwatch.models.alert import (
    ENGINE_SAVED_BY,
    SEVERITY_BY_TYPE,
    Alert,
    AlertFilter,
    AlertStatus,
    AlertType,
    Severity,
    make_alert_id,
    severity_for,
)
from fleetwatch.models.vehicle import ApiSource

TS = datetime(2025, 3, 4, 10, 15, 0, tzinfo=timezone.utc)


def _minimal() -> dict:
    return {
        "alert_id": "COL-359710045-SPEED_VIOLATION-2025-03-04T10:15:00+00:00",
        "vehicle_id": "COL-359710045",
        "plate": "ABC123",
        "type": "Speed Violation",
        "severity": "high",
        "timestamp": "2025-03-04T10:15:00Z",
        "source": "coltrack",
    }


class TestAlertDefaults:
    def test_minimal_alert_parses(self):
        alert = Alert(**_minimal())
        assert alert.type == AlertType.SPEED_VIOLATION
        assert alert.severity == Severity.HIGH
        assert alert.source == ApiSource.COLTRACK
        assert alert.timestamp == TS

    def test_pending_and_system_owned_by_default(self):
        alert = Alert(**_minimal())
        assert alert.status == AlertStatus.PENDING
        assert alert.saved_by == ENGINE_SAVED_BY
        assert alert.contract is None

    def test_invalid_type_raises(self):
        with pytest.raises(ValidationError):
            Alert(**{**_minimal(), "type": "Teleportation"})

    def test_invalid_status_raises(self):
        with pytest.raises(ValidationError):
            Alert(**{**_minimal(), "status": "closed"})

    def test_json_round_trip_keeps_values(self):
        alert = Alert(**_minimal())
        data = alert.model_dump(mode="json")
        assert data["type"] == "Speed Violation"
        assert data["severity"] == "high"
        assert data["status"] == "pending"
        assert Alert.model_validate(data) == alert


class TestSeverityMatchesType:
    def test_mismatched_severity_rejected(self):
        with pytest.raises(ValidationError, match="does not match type"):
            Alert(**{**_minimal(), "severity": "low"})

    def test_panic_must_be_critical(self):
        with pytest.raises(ValidationError):
            Alert(**{**_minimal(), "type": "Panic Button", "severity": "high"})
        alert = Alert(**{**_minimal(), "type": "Panic Button", "severity": "critical"})
        assert alert.severity == Severity.CRITICAL

    def test_every_type_has_a_severity(self):
        assert set(SEVERITY_BY_TYPE) == set(AlertType)

    @pytest.mark.parametrize(
        "alert_type, expected",
        [
            (AlertType.SPEED_VIOLATION, Severity.HIGH),
            (AlertType.PANIC_BUTTON, Severity.CRITICAL),
            (AlertType.HARSH_BRAKING, Severity.MEDIUM),
            (AlertType.HARSH_ACCELERATION, Severity.MEDIUM),
            (AlertType.COLLISION, Severity.CRITICAL),
            (AlertType.GEOFENCE_ENTRY, Severity.HIGH),
            (AlertType.GEOFENCE_EXIT, Severity.HIGH),
            (AlertType.BATTERY_DISCONNECT, Severity.CRITICAL),
            (AlertType.IDLE_EXCESSIVE, Severity.LOW),
            (AlertType.GENERAL_INFRACTION, Severity.MEDIUM),
            (AlertType.GENERAL_ALERT, Severity.HIGH),
        ],
    )
    def test_severity_table(self, alert_type, expected):
        assert severity_for(alert_type) == expected


class TestSeverityOrdering:
    def test_ranks_ascend(self):
        assert Severity.LOW < Severity.MEDIUM < Severity.HIGH < Severity.CRITICAL

    def test_max(self):
        assert max([Severity.MEDIUM, Severity.CRITICAL, Severity.LOW]) == Severity.CRITICAL

    def test_ordering_against_non_severity_unsupported(self):
        with pytest.raises(TypeError):
            Severity.LOW < 3


class TestMakeAlertId:
    def test_format(self):
        assert make_alert_id("COL-1", AlertType.PANIC_BUTTON, TS) == (
            "COL-1-PANIC_BUTTON-2025-03-04T10:15:00+00:00"
        )

    def test_deterministic(self):
        assert make_alert_id("FAG-7", AlertType.COLLISION, TS) == make_alert_id(
            "FAG-7", AlertType.COLLISION, TS
        )

    def test_differs_by_type_and_time(self):
        base = make_alert_id("COL-1", AlertType.SPEED_VIOLATION, TS)
        assert base != make_alert_id("COL-1", AlertType.HARSH_BRAKING, TS)
        assert base != make_alert_id("COL-1", AlertType.SPEED_VIOLATION, TS + timedelta(seconds=1))


class TestAlertFilter:
    def test_everything_optional(self):
        filters = AlertFilter()
        assert filters.status is None
        assert filters.limit is None

    def test_limit_must_be_positive(self):
        with pytest.raises(ValidationError):
            AlertFilter(limit=0)

    def test_status_list(self):
        filters = AlertFilter(status=["pending", "in_progress"])
        assert filters.status == [AlertStatus.PENDING, AlertStatus.IN_PROGRESS]

    def test_naive_bounds_read_as_utc(self):
        filters = AlertFilter(start=datetime(2025, 3, 1), before=datetime(2025, 3, 2, 12, 0))
        assert filters.start == datetime(2025, 3, 1, tzinfo=timezone.utc)
        assert filters.before.tzinfo is timezone.utc
        assert filters.end is None

    def test_aware_bounds_unchanged(self):
        offset = timezone(timedelta(hours=-3))
        filters = AlertFilter(end=datetime(2025, 3, 1, 9, 0, tzinfo=offset))
        assert filters.end.tzinfo is offset
