"""
FleetWatch - Main API Server

FastAPI application behind the fleet dashboard: synchronous refresh of the
alert engine, alert listing with filters, status workflow updates, summary
statistics and retention cleanup.

Dependencies (settings, store, monitor) are provided through FastAPI
Depends so tests can swap them with app.dependency_overrides.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from fleetwatch.agents import cleanup
from fleetwatch.agents.monitor import AlertMonitor, default_sources
from fleetwatch.config import Settings, get_settings
from fleetwatch.models.alert import Alert, AlertFilter, AlertStatus, Severity
from fleetwatch.models.summary import CleanupResult, RunSummary
from fleetwatch.store.base import AlertNotFoundError, AlertStore, StoreError
from fleetwatch.store.memory import InMemoryAlertStore
from fleetwatch.store.postgrest import PostgrestAlertStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="FleetWatch API",
    description="Fleet telemetry alert detection and case management",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Request / response models
# ============================================================================

class StatusUpdate(BaseModel):
    status: AlertStatus


class AlertStats(BaseModel):
    total: int = 0
    by_status: dict[AlertStatus, int] = Field(default_factory=dict)
    by_severity: dict[Severity, int] = Field(default_factory=dict)


# ============================================================================
# Dependencies
# ============================================================================

@lru_cache
def get_store() -> AlertStore:
    """Supabase store when configured, otherwise an in-process store."""
    settings = get_settings()
    if settings.supabase_url and settings.supabase_service_role_key:
        return PostgrestAlertStore.from_settings(settings)
    logger.warning("api.in_memory_store", extra={"reason": "SUPABASE_URL not configured"})
    return InMemoryAlertStore(enforce_unique=True)


def get_monitor(
    settings: Settings = Depends(get_settings),
    store: AlertStore = Depends(get_store),
) -> AlertMonitor:
    return AlertMonitor(settings.engine_config(), store, default_sources(settings))


# ============================================================================
# Endpoints
# ============================================================================

@app.get("/")
async def root():
    return {"service": "FleetWatch API", "version": app.version}


@app.get("/health")
async def health_check():
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.post("/api/v1/monitor/run", response_model=RunSummary)
async def run_monitor(monitor: AlertMonitor = Depends(get_monitor)):
    """Run one poll cycle synchronously (dashboard 'refresh')."""
    try:
        return await monitor.run_cycle(datetime.now(timezone.utc))
    except Exception as e:
        logger.exception("api.monitor_failed")
        raise HTTPException(status_code=503, detail="Could not refresh data") from e


@app.get("/api/v1/alerts", response_model=list[Alert])
async def list_alerts(
    status: Optional[list[AlertStatus]] = Query(default=None),
    severity: Optional[Severity] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    plate: Optional[str] = None,
    limit: int = Query(default=200, ge=1, le=1000),
    store: AlertStore = Depends(get_store),
):
    filters = AlertFilter(
        status=status, severity=severity, start=start, end=end, plate=plate, limit=limit
    )
    try:
        return await store.select(filters)
    except StoreError as e:
        logger.error("api.list_alerts_failed", extra={"error": str(e)})
        raise HTTPException(status_code=502, detail=str(e)) from e


@app.get("/api/v1/alerts/stats", response_model=AlertStats)
async def alert_stats(store: AlertStore = Depends(get_store)):
    try:
        stats = AlertStats(total=await store.count(AlertFilter()))
        for status in AlertStatus:
            stats.by_status[status] = await store.count(AlertFilter(status=[status]))
        for severity in Severity:
            stats.by_severity[severity] = await store.count(AlertFilter(severity=severity))
    except StoreError as e:
        logger.error("api.stats_failed", extra={"error": str(e)})
        raise HTTPException(status_code=502, detail=str(e)) from e
    return stats


@app.patch("/api/v1/alerts/{alert_id}/status", response_model=Alert)
async def update_alert_status(
    alert_id: str,
    update: StatusUpdate,
    store: AlertStore = Depends(get_store),
):
    try:
        return await store.update_status(alert_id, update.status)
    except AlertNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except StoreError as e:
        logger.error("api.update_status_failed", extra={"alert_id": alert_id, "error": str(e)})
        raise HTTPException(status_code=502, detail=str(e)) from e


@app.post("/api/v1/maintenance/cleanup", response_model=CleanupResult)
async def run_cleanup(
    settings: Settings = Depends(get_settings),
    store: AlertStore = Depends(get_store),
):
    return await cleanup.run(
        store,
        datetime.now(timezone.utc),
        retention_days=settings.resolved_retention_days,
        max_active=settings.max_active_alerts,
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
