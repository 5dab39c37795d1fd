"""
Critical-event validator — stricter non-repeat check for Panic Button and Collision.

Runs after the dedupe gate has accepted a candidate. Any alert of the same
(plate, type) in the trailing look-back (24 h by default) rejects it. These
rejections are counted separately as rejected_critical and logged at WARNING
for manual review.
"""

from __future__ import annotations

import logging

from fleetwatch.config import CRITICAL_TYPES, EngineConfig
from fleetwatch.models.alert import Alert, AlertType
from fleetwatch.store.base import AlertHistory

logger = logging.getLogger(__name__)

__all__ = ["CRITICAL_TYPES", "is_critical", "validate"]


def is_critical(alert_type: AlertType) -> bool:
    return alert_type in CRITICAL_TYPES


async def validate(candidate: Alert, history: AlertHistory, config: EngineConfig) -> bool:
    """Return False if the same critical event was stored within the look-back.

    Non-critical candidates always pass.

    Raises:
        StoreError: If the history query fails.
    """
    if not is_critical(candidate.type):
        return True

    start = candidate.timestamp - config.critical_lookback
    existing = await history.find_alerts(candidate.plate, candidate.type, start, candidate.timestamp)

    if existing:
        logger.warning(
            "critical.rejected",
            extra={
                "alert_id": candidate.alert_id,
                "plate": candidate.plate,
                "type": candidate.type.value,
                "lookback_hours": config.critical_lookback_hours,
                "previous_alert_id": existing[0].alert_id,
            },
        )
        return False
    return True
