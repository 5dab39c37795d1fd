"""
Vehicle models — canonical shape of one vehicle snapshot.

Vehicle is produced by the normalizer from a raw Coltrack or Fagor record,
consumed by the classifier, and discarded at the end of the poll cycle.
It is frozen: nothing downstream may mutate a snapshot.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ApiSource(str, Enum):
    COLTRACK = "coltrack"
    FAGOR = "fagor"


class VehicleStatus(str, Enum):
    MOVING = "moving"
    IDLE = "idle"        # engine on, not moving
    OFF = "off"
    STOPPED = "stopped"


DEFAULT_CONTRACT = "No asignado"


class Vehicle(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str                                   # vendor-prefixed, e.g. "COL-359710045"
    plate: str
    source: ApiSource
    driver: str = ""
    location: str = ""
    contract: str = DEFAULT_CONTRACT
    speed: float = Field(default=0.0, ge=0.0)  # km/h
    latitude: float = 0.0
    longitude: float = 0.0
    status: VehicleStatus = VehicleStatus.STOPPED
    event: str = ""                            # free-text vendor event / state string
    last_update: datetime
    ignition: Optional[bool] = None
