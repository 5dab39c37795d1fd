"""
Agent I/O contracts — typed inputs and outputs crossing agent boundaries.

Import hierarchy (no circular dependencies):
  vehicle.py        <- no internal imports
  alert.py          <- vehicle.py
  summary.py        <- vehicle.py
  agent_io.py       <- vehicle.py
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from fleetwatch.models.vehicle import ApiSource, Vehicle


# ---------------------------------------------------------------------------
# Normalizer: raw vendor record → Vehicle
# ---------------------------------------------------------------------------

class NormalizeInput(BaseModel):
    raw_record: dict[str, Any]
    source: ApiSource
    observed_at: datetime               # polling time; fallback for records without a timestamp
    ignition: Optional[bool] = None     # caller-supplied ignition flag, overrides vendor field


class NormalizeOutput(BaseModel):
    vehicle: Vehicle
    warnings: list[str] = Field(default_factory=list)
