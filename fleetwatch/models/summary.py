"""
Summary models — what a poll cycle or a cleanup pass reports back.

RunSummary is intended for logging and for the synchronous /monitor/run
response. Every failure inside a cycle ends up here as a counter or message
rather than as an exception.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from fleetwatch.models.vehicle import ApiSource


class RunSummary(BaseModel):
    started_at: datetime
    finished_at: Optional[datetime] = None
    duration_ms: int = 0
    vehicles_fetched: dict[ApiSource, int] = Field(default_factory=dict)
    source_errors: dict[ApiSource, str] = Field(default_factory=dict)   # fetch failures / timeouts
    alerts_detected: int = 0
    alerts_saved: int = 0
    duplicates: int = 0
    rejected_critical: int = 0        # tracked apart from duplicates for manual review
    errors: int = 0                   # persistence and history-query failures
    error_messages: list[str] = Field(default_factory=list)
    normalization_errors: int = 0
    normalization_warnings: list[str] = Field(default_factory=list)

    @property
    def total_vehicles(self) -> int:
        return sum(self.vehicles_fetched.values())


class CleanupResult(BaseModel):
    deleted_alerts: int = 0
    errors: list[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors
