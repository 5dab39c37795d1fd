"""
Classifier — Vehicle → zero or more Alert candidates.

A pure mapping: no deduplication, no persistence, no clock. The alert
timestamp is the vehicle's own last_update, so classifying the same snapshot
twice yields the same alert ids.

Rules are evaluated independently, so one snapshot can produce several
candidates (e.g. speeding while the panic button is pressed). The vendor
catch-alls only fire when no specific rule matched, so the same underlying
event is not reported twice.
"""

from __future__ import annotations

import logging
from typing import Optional

from fleetwatch.models.alert import Alert, AlertType, make_alert_id, severity_for
from fleetwatch.models.vehicle import ApiSource, Vehicle
from fleetwatch.utils.text import contains_any, normalize_text

logger = logging.getLogger(__name__)

DEFAULT_SPEED_THRESHOLD_KMH = 80.0

# ---------------------------------------------------------------------------
# Keyword rules: uppercase, accent-free; matched against normalize_text(event)
# ---------------------------------------------------------------------------
_KEYWORD_RULES: list[tuple[AlertType, tuple[str, ...], str]] = [
    (
        AlertType.PANIC_BUTTON,
        ("BOTON PANICO", "PANICO", "PANIC", "SOS"),
        "Panic button activated — requires immediate attention",
    ),
    (
        AlertType.HARSH_BRAKING,
        ("FRENADA BRUSCA", "FRENO BRUSCO", "HARSH BRAKE", "HARSH BRAKING"),
        "Harsh braking detected — review driver behaviour",
    ),
    (
        AlertType.HARSH_ACCELERATION,
        ("SOBRE ACELERACION", "ACELERACION BRUSCA", "HARSH ACCELERATION"),
        "Harsh acceleration detected — review driver behaviour",
    ),
    (
        AlertType.COLLISION,
        ("COLISION", "COLLISION", "CRASH", "IMPACTO", "IMPACT"),
        "Possible collision detected — check vehicle status",
    ),
    (
        AlertType.BATTERY_DISCONNECT,
        ("BATERIA DESCONECTADA", "BATTERY DISCONNECT", "DESCONEXION"),
        "Battery disconnected — possible tampering",
    ),
    (
        AlertType.IDLE_EXCESSIVE,
        ("RALENTI", "IDLE"),
        "Excessive idling detected",
    ),
]

_GEOFENCE_KEYWORDS = ("GEOCERCA", "GEOFENCE", "SALIDA DE ZONA", "FUERA DE ZONA", "ENTRADA A ZONA")
_GEOFENCE_EXIT_KEYWORDS = ("SALIDA", "EXIT", "FUERA")

# Vendor catch-alls: (source, keywords, type)
_CATCH_ALL_RULES: list[tuple[ApiSource, tuple[str, ...], AlertType]] = [
    (ApiSource.COLTRACK, ("INFRACCION",), AlertType.GENERAL_INFRACTION),
    (ApiSource.FAGOR, ("EXCESO",), AlertType.GENERAL_INFRACTION),
    (ApiSource.FAGOR, ("ALERTA", "EMERGENCIA"), AlertType.GENERAL_ALERT),
]


def _format_number(value: float) -> str:
    return f"{value:g}"


def build_alert(vehicle: Vehicle, alert_type: AlertType, details: str) -> Alert:
    """Create a pending Alert for *vehicle*; severity comes from the type."""
    return Alert(
        alert_id=make_alert_id(vehicle.id, alert_type, vehicle.last_update),
        vehicle_id=vehicle.id,
        plate=vehicle.plate,
        type=alert_type,
        severity=severity_for(alert_type),
        timestamp=vehicle.last_update,
        source=vehicle.source,
        driver=vehicle.driver,
        location=vehicle.location,
        latitude=vehicle.latitude,
        longitude=vehicle.longitude,
        speed=vehicle.speed,
        contract=vehicle.contract or None,
        details=details,
    )


def _geofence_type(event: str) -> Optional[AlertType]:
    if not contains_any(event, _GEOFENCE_KEYWORDS):
        return None
    if contains_any(event, _GEOFENCE_EXIT_KEYWORDS):
        return AlertType.GEOFENCE_EXIT
    return AlertType.GEOFENCE_ENTRY


def classify(vehicle: Vehicle, speed_threshold_kmh: float = DEFAULT_SPEED_THRESHOLD_KMH) -> list[Alert]:
    """Return the alert candidates for one vehicle snapshot.

    Args:
        vehicle: Normalized vehicle snapshot. Not modified.
        speed_threshold_kmh: Speed at or above which a Speed Violation is raised.

    Returns:
        Candidates in rule order; each AlertType appears at most once.
    """
    alerts: list[Alert] = []
    event = normalize_text(vehicle.event)

    if vehicle.speed >= speed_threshold_kmh:
        alerts.append(build_alert(
            vehicle,
            AlertType.SPEED_VIOLATION,
            f"Speed {_format_number(vehicle.speed)} km/h exceeds limit of "
            f"{_format_number(speed_threshold_kmh)} km/h",
        ))

    if event:
        for alert_type, keywords, details in _KEYWORD_RULES:
            if contains_any(event, keywords):
                alerts.append(build_alert(vehicle, alert_type, details))

        geofence = _geofence_type(event)
        if geofence is not None:
            direction = "left" if geofence is AlertType.GEOFENCE_EXIT else "entered"
            alerts.append(build_alert(vehicle, geofence, f"Vehicle {direction} a monitored zone"))

        if not alerts:
            alerts.extend(_catch_all(vehicle, event))

    if alerts:
        logger.debug(
            "classify.detected",
            extra={"vehicle_id": vehicle.id, "types": [a.type.value for a in alerts]},
        )
    return alerts


def _catch_all(vehicle: Vehicle, event: str) -> list[Alert]:
    matched: list[Alert] = []
    for source, keywords, alert_type in _CATCH_ALL_RULES:
        if vehicle.source != source or not contains_any(event, keywords):
            continue
        if any(a.type == alert_type for a in matched):
            continue
        matched.append(build_alert(vehicle, alert_type, vehicle.event))
    return matched
