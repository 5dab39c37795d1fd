"""
Deduplication gate — should this candidate be persisted?

A repeat of the same (plate, type) inside the type's window is treated as the
continuation of one real-world event, not a new one. The check is a sliding
window over stored timestamps: [candidate.timestamp - window, candidate.timestamp].

History is queried fresh on every call and nothing is cached in-process: a
scheduled worker and a UI-triggered run must make the same decision for the
same stored state. Two calls for the same candidate before either
insert lands will both accept; the store's unique constraint is the backstop.
"""

from __future__ import annotations

import logging

from fleetwatch.config import EngineConfig
from fleetwatch.models.alert import Alert
from fleetwatch.store.base import AlertHistory

logger = logging.getLogger(__name__)


async def should_accept(candidate: Alert, history: AlertHistory, config: EngineConfig) -> bool:
    """Return False if a matching alert already exists inside the type's window.

    Raises:
        StoreError: If the history query fails. The orchestrator counts it as an error.
    """
    window = config.window_for(candidate.type)
    start = candidate.timestamp - window
    existing = await history.find_alerts(candidate.plate, candidate.type, start, candidate.timestamp)

    if existing:
        logger.info(
            "dedupe.duplicate",
            extra={
                "alert_id": candidate.alert_id,
                "plate": candidate.plate,
                "type": candidate.type.value,
                "window_minutes": window.total_seconds() / 60,
                "matches": len(existing),
            },
        )
        return False
    return True
