"""
Alert store contract.

The engine needs only five operations from persistence: insert one alert,
look up alerts by (plate, type, time range) for deduplication, filtered
select, status update by id, and filtered delete for retention cleanup.
Anything implementing AlertStore can back an AlertMonitor.

AlertHistory is the read-only slice the dedupe gate and critical validator
depend on, so they can be tested against a bare AsyncMock.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from fleetwatch.models.alert import Alert, AlertFilter, AlertStatus, AlertType


class StoreError(RuntimeError):
    """The store rejected or failed an operation."""


class DuplicateAlertError(StoreError):
    """Insert hit the (plate, type, timestamp) unique constraint."""


class AlertNotFoundError(StoreError):
    """No alert with the requested id exists."""


@runtime_checkable
class AlertHistory(Protocol):
    async def find_alerts(
        self, plate: str, alert_type: AlertType, start: datetime, end: datetime
    ) -> list[Alert]:
        """Alerts for *plate* and *alert_type* with start <= timestamp <= end."""
        ...


@runtime_checkable
class AlertStore(AlertHistory, Protocol):
    async def insert(self, alert: Alert) -> Alert:
        ...

    async def select(self, filters: AlertFilter) -> list[Alert]:
        """Matching alerts, newest first."""
        ...

    async def count(self, filters: AlertFilter) -> int:
        ...

    async def update_status(self, alert_id: str, status: AlertStatus) -> Alert:
        ...

    async def delete(self, filters: AlertFilter) -> int:
        """Delete matching alerts (honours filters.limit, oldest first); return the count."""
        ...
