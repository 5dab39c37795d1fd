"""
Retention cleanup — keeps the alert table from growing without bound.

Two passes, each best-effort:
  1. Delete resolved alerts older than the retention period (cut off at the
     start of that day, UTC).
  2. If more than max_active alerts are still pending/in progress, delete
     the oldest ones until the limit is met.

Failures are captured in CleanupResult.errors rather than raised.

Entry point: async def run(store, now, retention_days, max_active) -> CleanupResult
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from fleetwatch.models.alert import AlertFilter, AlertStatus
from fleetwatch.models.summary import CleanupResult
from fleetwatch.store.base import AlertStore, StoreError

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = [AlertStatus.PENDING, AlertStatus.IN_PROGRESS]


def retention_cutoff(now: datetime, retention_days: int) -> datetime:
    """Midnight at the start of the day *retention_days* before *now*."""
    cutoff = now - timedelta(days=retention_days)
    return cutoff.replace(hour=0, minute=0, second=0, microsecond=0)


async def _cleanup_resolved(store: AlertStore, cutoff: datetime, errors: list[str]) -> int:
    try:
        return await store.delete(AlertFilter(status=[AlertStatus.RESOLVED], before=cutoff))
    except StoreError as e:
        errors.append(f"Failed to clean up resolved alerts: {e}")
        logger.warning("cleanup.resolved_error", extra={"error": str(e)})
        return 0


async def _cleanup_excess_active(store: AlertStore, max_active: int, errors: list[str]) -> int:
    try:
        active = await store.count(AlertFilter(status=ACTIVE_STATUSES))
        if active <= max_active:
            return 0
        return await store.delete(AlertFilter(status=ACTIVE_STATUSES, limit=active - max_active))
    except StoreError as e:
        errors.append(f"Failed to trim active alerts: {e}")
        logger.warning("cleanup.active_error", extra={"error": str(e)})
        return 0


async def run(
    store: AlertStore,
    now: datetime,
    retention_days: int = 7,
    max_active: int = 500,
) -> CleanupResult:
    """Apply the retention policy to *store*.

    Returns:
        CleanupResult with the number of deleted alerts. Never raises.
    """
    errors: list[str] = []
    cutoff = retention_cutoff(now, retention_days)

    logger.info("cleanup.start", extra={"cutoff": cutoff.isoformat(), "max_active": max_active})

    deleted = await _cleanup_resolved(store, cutoff, errors)
    deleted += await _cleanup_excess_active(store, max_active, errors)

    logger.info("cleanup.complete", extra={"deleted": deleted, "errors": len(errors)})
    return CleanupResult(deleted_alerts=deleted, errors=errors)
