"""
Normalizer — raw vendor record → canonical Vehicle.

Handles two source formats:
  - Coltrack  (JSON API; uppercase Spanish keys in the monitor feed,
               TitleCase keys in the LastPosition feed)
  - Fagor     (FlotasNet SOAP; DatosEstadoVehiculo elements flattened to dicts,
               comma decimals)

Both vendors have renamed fields over time, so every logical field is read by
probing an ordered tuple of candidate keys. Missing fields fall back to safe
defaults and leave a warning; a record that cannot identify a vehicle at all
raises NormalizationError.

Entry point: async def run(input: NormalizeInput) -> NormalizeOutput

No I/O and no wall-clock reads: the polling-time fallback is passed in.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional

from fleetwatch.models.agent_io import NormalizeInput, NormalizeOutput
from fleetwatch.models.vehicle import DEFAULT_CONTRACT, ApiSource, Vehicle, VehicleStatus
from fleetwatch.utils.text import normalize_text

logger = logging.getLogger(__name__)


class NormalizationError(ValueError):
    """Raised when a raw record cannot be turned into a Vehicle."""


# ---------------------------------------------------------------------------
# Candidate keys per logical field, in lookup order
# ---------------------------------------------------------------------------
_COLTRACK_KEYS: dict[str, tuple[str, ...]] = {
    "device_id": ("IMEI", "imei", "Imei"),
    "plate": ("PATENTE", "Patente", "patente", "PLACA", "Placa", "placa"),
    "driver": ("CONDUCTOR", "Conductor", "conductor"),
    "speed": ("VELOCIDAD", "Velocidad", "velocidad"),
    "latitude": ("LATITUD", "Latitud", "latitud"),
    "longitude": ("LONGITUD", "Longitud", "longitud"),
    "location": ("DIRECCION", "Direccion", "direccion", "UBICACION", "Ubicacion", "Ciudad"),
    "contract": ("CONTRATO", "Contrato", "contrato", "CLIENTE", "Cliente"),
    "event": ("EVENTO", "Evento", "evento"),
    "timestamp": ("FECHA_GPS", "FechaGPS", "Fecha", "fecha"),
    "ignition": ("IGNICION", "Ignicion", "ignicion"),
}

_FAGOR_KEYS: dict[str, tuple[str, ...]] = {
    "device_id": ("Codigo", "CODIGO", "codigo"),
    "plate": ("Matricula", "MATRICULA", "matricula", "Patente", "PATENTE"),
    "driver": ("Conductor", "CONDUCTOR"),
    "speed": ("Velocidad", "VELOCIDAD"),
    "latitude": ("Latitud", "LATITUD"),
    "longitude": ("Longitud", "LONGITUD"),
    "location": ("Localidad", "LOCALIDAD", "Ubicacion"),
    "contract": ("Contrato", "CONTRATO", "Cliente"),
    "event": ("Evento", "EVENTO", "Estado", "ESTADO"),
    "timestamp": ("UltimaPosicion", "FechaHora", "Fecha"),
    "ignition": ("ignition", "IGNITION", "Ignicion"),
}

_ID_PREFIX: dict[ApiSource, str] = {
    ApiSource.COLTRACK: "COL",
    ApiSource.FAGOR: "FAG",
}

# Ignition keywords in vendor event text. ON/OFF only match as whole words
# so that e.g. "COLISION" is not read as ignition on.
_IGNITION_ON_PATTERN = re.compile(
    r"ARRANQUE|INICIO RALENTI|IGNICION ON|IGNITION ON|MOTOR ENCENDIDO|\bON\b"
)
_IGNITION_OFF_PATTERN = re.compile(
    r"PARADA|FIN RALENTI|IGNICION OFF|IGNITION OFF|MOTOR APAGADO|\bOFF\b"
)

_TRUTHY_IGNITION = {"ON", "1", "TRUE", "SI", "YES"}
_FALSY_IGNITION = {"OFF", "0", "FALSE", "NO"}

_TIMESTAMP_FORMATS = ("%d/%m/%Y %H:%M:%S", "%d/%m/%Y %H:%M", "%d-%m-%Y %H:%M:%S")


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def _first(raw: dict[str, Any], keys: tuple[str, ...]) -> Any:
    """Return the first non-empty value among *keys*, or None."""
    for key in keys:
        value = raw.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def _to_float(value: Any, field: str, warnings: list[str], label: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool):
        warnings.append(f"{label}: non-numeric {field} '{value}' — ignored")
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip().replace(",", "."))
    except ValueError:
        warnings.append(f"{label}: non-numeric {field} '{value}' — ignored")
        return None


def _parse_speed(value: Any, warnings: list[str], label: str) -> float:
    speed = _to_float(value, "speed", warnings, label)
    if speed is None:
        warnings.append(f"{label}: no speed field — defaulting to 0")
        return 0.0
    if speed < 0:
        warnings.append(f"{label}: negative speed {speed} — clamped to 0")
        return 0.0
    return speed


def _parse_coordinate(value: Any, field: str, warnings: list[str], label: str) -> float:
    coord = _to_float(value, field, warnings, label)
    if coord is None:
        warnings.append(f"{label}: no {field} field — defaulting to 0.0")
        return 0.0
    return coord


def _parse_ignition(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    token = str(value).strip().upper()
    if token in _TRUTHY_IGNITION:
        return True
    if token in _FALSY_IGNITION:
        return False
    return None


def _parse_timestamp(
    value: Any, observed_at: datetime, warnings: list[str], label: str
) -> datetime:
    if value is None:
        warnings.append(f"{label}: no timestamp field — using polling time")
        return observed_at

    text = str(value).strip()
    parsed: Optional[datetime] = None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        for fmt in _TIMESTAMP_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue

    if parsed is None:
        warnings.append(f"{label}: couldn't parse timestamp '{text}' — using polling time")
        return observed_at
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def determine_status(speed: float, event: str, ignition: Optional[bool]) -> VehicleStatus:
    """Derive status: movement first, then event keywords, then the ignition flag."""
    if speed > 0:
        return VehicleStatus.MOVING
    text = normalize_text(event)
    if _IGNITION_ON_PATTERN.search(text):
        return VehicleStatus.IDLE
    if _IGNITION_OFF_PATTERN.search(text):
        return VehicleStatus.OFF
    return VehicleStatus.IDLE if ignition else VehicleStatus.STOPPED


# ---------------------------------------------------------------------------
# Record parser, shared by both vendors, driven by their key tables
# ---------------------------------------------------------------------------

def _parse_record(
    raw: dict[str, Any],
    source: ApiSource,
    keys: dict[str, tuple[str, ...]],
    observed_at: datetime,
    ignition_override: Optional[bool],
    warnings: list[str],
) -> Vehicle:
    label = source.value.capitalize()

    plate_raw = _first(raw, keys["plate"])
    device_raw = _first(raw, keys["device_id"])
    if plate_raw is None and device_raw is None:
        raise NormalizationError(
            f"{label}: record has neither a plate nor a device id "
            f"(tried {', '.join(keys['plate'] + keys['device_id'])})"
        )

    plate = str(plate_raw).strip() if plate_raw is not None else str(device_raw).strip()
    if plate_raw is None:
        warnings.append(f"{label}: no plate field — using device id '{plate}'")
    vehicle_id = f"{_ID_PREFIX[source]}-{str(device_raw).strip() if device_raw is not None else plate}"

    speed = _parse_speed(_first(raw, keys["speed"]), warnings, label)
    latitude = _parse_coordinate(_first(raw, keys["latitude"]), "latitude", warnings, label)
    longitude = _parse_coordinate(_first(raw, keys["longitude"]), "longitude", warnings, label)

    driver = _first(raw, keys["driver"])
    location = _first(raw, keys["location"])
    contract = _first(raw, keys["contract"])
    event = _first(raw, keys["event"])

    ignition = ignition_override
    if ignition is None:
        ignition = _parse_ignition(_first(raw, keys["ignition"]))

    last_update = _parse_timestamp(_first(raw, keys["timestamp"]), observed_at, warnings, label)

    event_text = str(event).strip() if event is not None else ""

    return Vehicle(
        id=vehicle_id,
        plate=plate,
        source=source,
        driver=str(driver).strip() if driver is not None else "",
        location=str(location).strip() if location is not None else "",
        contract=str(contract).strip() if contract is not None else DEFAULT_CONTRACT,
        speed=speed,
        latitude=latitude,
        longitude=longitude,
        status=determine_status(speed, event_text, ignition),
        event=event_text,
        last_update=last_update,
        ignition=ignition,
    )


_KEY_TABLES = {
    ApiSource.COLTRACK: _COLTRACK_KEYS,
    ApiSource.FAGOR: _FAGOR_KEYS,
}


def normalize_record(
    raw: Any,
    source: ApiSource,
    observed_at: datetime,
    ignition: Optional[bool] = None,
) -> NormalizeOutput:
    """Normalize one raw vendor record.

    Raises:
        NormalizationError: If *raw* is not a mapping or identifies no vehicle.
    """
    if not isinstance(raw, dict):
        raise NormalizationError(
            f"{source.value.capitalize()}: expected a record object, got {type(raw).__name__}"
        )
    warnings: list[str] = []
    vehicle = _parse_record(raw, source, _KEY_TABLES[source], observed_at, ignition, warnings)
    return NormalizeOutput(vehicle=vehicle, warnings=warnings)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

async def run(input: NormalizeInput) -> NormalizeOutput:
    """Normalize a raw vendor record into a Vehicle.

    Args:
        input: NormalizeInput with the raw record, its source and the polling time.

    Returns:
        NormalizeOutput with the Vehicle and any defaulting warnings.

    Raises:
        NormalizationError: If the record cannot identify a vehicle.
    """
    output = normalize_record(input.raw_record, input.source, input.observed_at, input.ignition)

    if output.warnings:
        logger.warning(
            "normalize.warnings",
            extra={"vehicle_id": output.vehicle.id, "count": len(output.warnings), "warnings": output.warnings},
        )
    return output
