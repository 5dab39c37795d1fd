"""
Alert models — typed, severity-tagged detections.

Alert is the canonical persisted record. The classifier produces Alert
candidates; the dedupe gate and critical validator decide whether they are
stored. Severity is never chosen at the call site: it always comes from
SEVERITY_BY_TYPE.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from fleetwatch.models.vehicle import ApiSource

ENGINE_SAVED_BY = "Sistema (Auto)"


class AlertType(str, Enum):
    SPEED_VIOLATION = "Speed Violation"
    PANIC_BUTTON = "Panic Button"
    HARSH_BRAKING = "Harsh Braking"
    HARSH_ACCELERATION = "Harsh Acceleration"
    COLLISION = "Collision"
    GEOFENCE_ENTRY = "Geofence Entry"
    GEOFENCE_EXIT = "Geofence Exit"
    BATTERY_DISCONNECT = "Battery Disconnect"
    IDLE_EXCESSIVE = "Idle Excessive"
    GENERAL_INFRACTION = "General Infraction"
    GENERAL_ALERT = "General Alert"

    @property
    def code(self) -> str:
        """Short identifier used inside alert ids, e.g. SPEED_VIOLATION."""
        return self.name


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_RANK: dict[Severity, int] = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class AlertStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


# Single source of truth for severity. Every code path goes through this map.
SEVERITY_BY_TYPE: dict[AlertType, Severity] = {
    AlertType.SPEED_VIOLATION: Severity.HIGH,
    AlertType.PANIC_BUTTON: Severity.CRITICAL,
    AlertType.HARSH_BRAKING: Severity.MEDIUM,
    AlertType.HARSH_ACCELERATION: Severity.MEDIUM,
    AlertType.COLLISION: Severity.CRITICAL,
    AlertType.GEOFENCE_ENTRY: Severity.HIGH,
    AlertType.GEOFENCE_EXIT: Severity.HIGH,
    AlertType.BATTERY_DISCONNECT: Severity.CRITICAL,
    AlertType.IDLE_EXCESSIVE: Severity.LOW,
    AlertType.GENERAL_INFRACTION: Severity.MEDIUM,
    AlertType.GENERAL_ALERT: Severity.HIGH,
}


def severity_for(alert_type: AlertType) -> Severity:
    return SEVERITY_BY_TYPE[alert_type]


def make_alert_id(vehicle_id: str, alert_type: AlertType, timestamp: datetime) -> str:
    """Deterministic id: same vehicle, type and event time always give the same id."""
    return f"{vehicle_id}-{alert_type.code}-{timestamp.isoformat()}"


class Alert(BaseModel):
    alert_id: str
    vehicle_id: str
    plate: str
    type: AlertType
    severity: Severity
    timestamp: datetime                 # event time reported by the vehicle, not detection time
    source: ApiSource
    driver: str = ""
    location: str = ""
    latitude: float = 0.0
    longitude: float = 0.0
    speed: float = 0.0
    contract: Optional[str] = None
    details: str = ""
    status: AlertStatus = AlertStatus.PENDING
    saved_by: str = ENGINE_SAVED_BY

    @model_validator(mode="after")
    def _severity_matches_type(self) -> Alert:
        expected = SEVERITY_BY_TYPE[self.type]
        if self.severity != expected:
            raise ValueError(
                f"severity '{self.severity.value}' does not match type "
                f"'{self.type.value}' (expected '{expected.value}')"
            )
        return self


class AlertFilter(BaseModel):
    """Filter accepted by AlertStore.select / delete / count. None means 'any'."""

    plate: Optional[str] = None
    type: Optional[AlertType] = None
    status: Optional[list[AlertStatus]] = None
    severity: Optional[Severity] = None
    start: Optional[datetime] = None    # inclusive
    end: Optional[datetime] = None      # inclusive
    before: Optional[datetime] = None   # exclusive upper bound, used by retention cleanup
    limit: Optional[int] = Field(default=None, ge=1)

    @field_validator("start", "end", "before", mode="after")
    @classmethod
    def _naive_means_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
