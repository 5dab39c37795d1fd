"""
In-memory AlertStore.

Used by tests and by the API when no Supabase credentials are configured.
State lives only as long as the instance, which is exactly what a
stateless worker invocation would see on a fresh database.
"""

from __future__ import annotations

import itertools
import logging
from datetime import datetime

from fleetwatch.models.alert import Alert, AlertFilter, AlertStatus, AlertType
from fleetwatch.store.base import AlertNotFoundError, DuplicateAlertError

logger = logging.getLogger(__name__)


def matches(alert: Alert, filters: AlertFilter) -> bool:
    if filters.plate is not None and alert.plate != filters.plate:
        return False
    if filters.type is not None and alert.type != filters.type:
        return False
    if filters.status is not None and alert.status not in filters.status:
        return False
    if filters.severity is not None and alert.severity != filters.severity:
        return False
    if filters.start is not None and alert.timestamp < filters.start:
        return False
    if filters.end is not None and alert.timestamp > filters.end:
        return False
    if filters.before is not None and alert.timestamp >= filters.before:
        return False
    return True


class InMemoryAlertStore:
    """Dict-backed store keyed by alert_id.

    With enforce_unique=True the store behaves like a table with a unique
    constraint on (plate, type, timestamp) and raises DuplicateAlertError on
    a second insert. Without it, repeated inserts are all kept.
    """

    def __init__(self, enforce_unique: bool = False) -> None:
        self.enforce_unique = enforce_unique
        self._alerts: dict[str, Alert] = {}
        self._row_seq = itertools.count(1)

    @property
    def alerts(self) -> list[Alert]:
        return list(self._alerts.values())

    async def insert(self, alert: Alert) -> Alert:
        if self.enforce_unique:
            key = (alert.plate, alert.type, alert.timestamp)
            if any((a.plate, a.type, a.timestamp) == key for a in self._alerts.values()):
                raise DuplicateAlertError(
                    f"alert for {alert.plate} / {alert.type.value} at "
                    f"{alert.timestamp.isoformat()} already exists"
                )
        row_id = alert.alert_id
        if row_id in self._alerts:
            row_id = f"{alert.alert_id}#{next(self._row_seq)}"
        self._alerts[row_id] = alert
        return alert

    async def find_alerts(
        self, plate: str, alert_type: AlertType, start: datetime, end: datetime
    ) -> list[Alert]:
        return await self.select(AlertFilter(plate=plate, type=alert_type, start=start, end=end))

    async def select(self, filters: AlertFilter) -> list[Alert]:
        found = sorted(
            (a for a in self._alerts.values() if matches(a, filters)),
            key=lambda a: a.timestamp,
            reverse=True,
        )
        if filters.limit is not None:
            found = found[: filters.limit]
        return found

    async def count(self, filters: AlertFilter) -> int:
        return sum(1 for a in self._alerts.values() if matches(a, filters))

    async def update_status(self, alert_id: str, status: AlertStatus) -> Alert:
        alert = self._alerts.get(alert_id)
        if alert is None:
            raise AlertNotFoundError(f"alert '{alert_id}' not found")
        updated = alert.model_copy(update={"status": status})
        self._alerts[alert_id] = updated
        return updated

    async def delete(self, filters: AlertFilter) -> int:
        doomed = sorted(
            ((row_id, a) for row_id, a in self._alerts.items() if matches(a, filters)),
            key=lambda item: item[1].timestamp,
        )
        if filters.limit is not None:
            doomed = doomed[: filters.limit]
        for row_id, _ in doomed:
            del self._alerts[row_id]
        logger.info("memory_store.deleted", extra={"count": len(doomed)})
        return len(doomed)
