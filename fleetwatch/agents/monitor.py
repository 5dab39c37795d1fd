"""
AlertMonitor — one polling cycle: fetch → normalize → classify → dedupe →
validate → persist → summarize.

Upstream sources are fetched in parallel, each under its own timeout. A
source that fails or times out contributes zero vehicles and an entry in
RunSummary.source_errors; the other source is processed normally.

Every per-record, per-vehicle and per-candidate failure is captured into the
summary's counters. run_cycle() never raises, so the same object can sit
behind an HTTP endpoint or a scheduled worker.

Entry point: async def AlertMonitor.run_cycle(now) -> RunSummary
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from enum import Enum
from functools import partial
from typing import Any, Awaitable, Callable, Mapping, Optional

from pydantic import ValidationError

from fleetwatch.agents import critical, dedupe, normalize
from fleetwatch.agents.classify import classify
from fleetwatch.config import EngineConfig, Settings
from fleetwatch.integrations import coltrack, fagor
from fleetwatch.models.agent_io import NormalizeInput
from fleetwatch.models.alert import Alert
from fleetwatch.models.summary import RunSummary
from fleetwatch.models.vehicle import ApiSource, Vehicle
from fleetwatch.store.base import AlertStore, DuplicateAlertError, StoreError

logger = logging.getLogger(__name__)

SourceFetcher = Callable[[], Awaitable[list[dict[str, Any]]]]


class Outcome(str, Enum):
    SAVED = "saved"
    DUPLICATE = "duplicate"
    REJECTED_CRITICAL = "rejected_critical"


def default_sources(settings: Settings) -> dict[ApiSource, SourceFetcher]:
    """Real vendor clients. Missing credentials surface as a per-source fetch error."""
    return {
        ApiSource.COLTRACK: partial(coltrack.fetch_vehicles, settings),
        ApiSource.FAGOR: partial(fagor.fetch_vehicles, settings),
    }


class AlertMonitor:
    def __init__(
        self,
        config: EngineConfig,
        store: AlertStore,
        sources: Mapping[ApiSource, SourceFetcher],
    ) -> None:
        self.config = config
        self.store = store
        self.sources = dict(sources)

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    async def _fetch_source(self, source: ApiSource) -> list[dict[str, Any]]:
        timeout = self.config.source_timeout_seconds
        try:
            records = await asyncio.wait_for(self.sources[source](), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise TimeoutError(f"{source.value} fetch timed out after {timeout:g}s") from e
        if not isinstance(records, list):
            raise TypeError(f"{source.value} fetch returned {type(records).__name__}, expected list")
        return records

    async def _fetch_all(self, summary: RunSummary) -> list[tuple[ApiSource, list[dict[str, Any]]]]:
        order = list(self.sources)
        results = await asyncio.gather(
            *[self._fetch_source(source) for source in order],
            return_exceptions=True,
        )

        fetched: list[tuple[ApiSource, list[dict[str, Any]]]] = []
        for source, result in zip(order, results):
            if isinstance(result, BaseException):
                summary.vehicles_fetched[source] = 0
                summary.source_errors[source] = str(result) or type(result).__name__
                logger.warning(
                    "monitor.source_failed",
                    extra={"source": source.value, "error": str(result)},
                )
            else:
                summary.vehicles_fetched[source] = len(result)
                fetched.append((source, result))
        return fetched

    # ------------------------------------------------------------------
    # Normalize
    # ------------------------------------------------------------------

    async def _normalize_all(
        self,
        fetched: list[tuple[ApiSource, list[dict[str, Any]]]],
        now: datetime,
        summary: RunSummary,
    ) -> list[Vehicle]:
        vehicles: list[Vehicle] = []
        for source, records in fetched:
            for raw in records:
                try:
                    output = await normalize.run(
                        NormalizeInput(raw_record=raw, source=source, observed_at=now)
                    )
                except (normalize.NormalizationError, ValidationError) as e:
                    summary.normalization_errors += 1
                    summary.normalization_warnings.append(f"{source.value}: {e}")
                    logger.warning(
                        "monitor.normalization_error",
                        extra={"source": source.value, "error": str(e)},
                    )
                    continue
                summary.normalization_warnings.extend(
                    f"{output.vehicle.id}: {w}" for w in output.warnings
                )
                vehicles.append(output.vehicle)
        return vehicles

    # ------------------------------------------------------------------
    # Dedupe / validate / persist
    # ------------------------------------------------------------------

    async def process_candidate(self, candidate: Alert) -> Outcome:
        """Run one candidate through the gate, the critical validator and the store.

        Raises:
            StoreError: If the history lookup or the insert fails.
        """
        try:
            if not await dedupe.should_accept(candidate, self.store, self.config):
                return Outcome.DUPLICATE
            if not await critical.validate(candidate, self.store, self.config):
                return Outcome.REJECTED_CRITICAL
        except StoreError as e:
            logger.error(
                "monitor.history_failed",
                extra={"alert_id": candidate.alert_id, "error": str(e)},
            )
            raise

        try:
            await self.store.insert(candidate)
        except DuplicateAlertError:
            logger.info(
                "monitor.duplicate_on_insert",
                extra={"alert_id": candidate.alert_id, "plate": candidate.plate},
            )
            return Outcome.DUPLICATE
        except StoreError as e:
            logger.error(
                "monitor.persist_failed",
                extra={"alert_id": candidate.alert_id, "error": str(e)},
            )
            raise

        logger.info(
            "monitor.alert_saved",
            extra={
                "alert_id": candidate.alert_id,
                "plate": candidate.plate,
                "type": candidate.type.value,
                "severity": candidate.severity.value,
            },
        )
        return Outcome.SAVED

    @staticmethod
    def _record(summary: RunSummary, outcome: Outcome) -> None:
        if outcome is Outcome.SAVED:
            summary.alerts_saved += 1
        elif outcome is Outcome.DUPLICATE:
            summary.duplicates += 1
        else:
            summary.rejected_critical += 1

    @staticmethod
    def _record_error(summary: RunSummary, candidate: Alert, error: Exception) -> None:
        summary.errors += 1
        summary.error_messages.append(
            f"{candidate.alert_id} ({candidate.type.value}): {str(error) or type(error).__name__}"
        )

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run_cycle(self, now: Optional[datetime] = None) -> RunSummary:
        """Run one complete poll cycle.

        Args:
            now: Polling time; used as the timestamp for records that carry none.
                 Defaults to the current UTC time.

        Returns:
            RunSummary with per-source counts and alert outcome counters.
            Never raises — all failures are captured in the summary.
        """
        now = now or datetime.now(timezone.utc)
        started = time.monotonic()
        summary = RunSummary(started_at=now)

        logger.info("monitor.cycle_start", extra={"sources": [s.value for s in self.sources]})

        fetched = await self._fetch_all(summary)
        vehicles = await self._normalize_all(fetched, now, summary)

        for vehicle in vehicles:
            try:
                candidates = classify(vehicle, self.config.speed_threshold_kmh)
            except Exception as e:
                summary.errors += 1
                summary.error_messages.append(f"failed to classify {vehicle.id}: {e}")
                logger.exception("monitor.classify_failed", extra={"vehicle_id": vehicle.id})
                continue

            summary.alerts_detected += len(candidates)
            for candidate in candidates:
                try:
                    outcome = await self.process_candidate(candidate)
                except StoreError as e:
                    self._record_error(summary, candidate, e)
                    continue
                except Exception as e:
                    logger.exception(
                        "monitor.candidate_failed", extra={"alert_id": candidate.alert_id}
                    )
                    self._record_error(summary, candidate, e)
                    continue
                self._record(summary, outcome)

        summary.duration_ms = int((time.monotonic() - started) * 1000)
        summary.finished_at = now + timedelta(milliseconds=summary.duration_ms)

        logger.info(
            "monitor.cycle_complete",
            extra={
                "vehicles": {s.value: n for s, n in summary.vehicles_fetched.items()},
                "source_errors": len(summary.source_errors),
                "detected": summary.alerts_detected,
                "saved": summary.alerts_saved,
                "duplicates": summary.duplicates,
                "rejected_critical": summary.rejected_critical,
                "errors": summary.errors,
                "normalization_errors": summary.normalization_errors,
                "duration_ms": summary.duration_ms,
            },
        )
        return summary
