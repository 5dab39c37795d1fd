"""
PostgREST (Supabase REST) AlertStore.

Talks to the `saved_alerts` table over /rest/v1 with the service-role key.
requests is blocking, so every call is pushed onto a worker thread with
asyncio.to_thread to keep the poll cycle's event loop free.

A unique index on (plate, type, timestamp) is recommended on the table;
PostgREST reports violations as HTTP 409, which surfaces here as
DuplicateAlertError and closes the read-then-write race in the dedupe gate.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional

import requests
from pydantic import ValidationError

from fleetwatch.config import Settings
from fleetwatch.models.alert import Alert, AlertFilter, AlertStatus, AlertType
from fleetwatch.store.base import AlertNotFoundError, DuplicateAlertError, StoreError

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 15

Params = list[tuple[str, str]]


def filter_params(filters: AlertFilter) -> Params:
    """Translate an AlertFilter into PostgREST query parameters."""
    params: Params = []
    if filters.plate is not None:
        params.append(("plate", f"eq.{filters.plate}"))
    if filters.type is not None:
        params.append(("type", f"eq.{filters.type.value}"))
    if filters.status is not None:
        params.append(("status", f"in.({','.join(s.value for s in filters.status)})"))
    if filters.severity is not None:
        params.append(("severity", f"eq.{filters.severity.value}"))
    if filters.start is not None:
        params.append(("timestamp", f"gte.{filters.start.isoformat()}"))
    if filters.end is not None:
        params.append(("timestamp", f"lte.{filters.end.isoformat()}"))
    if filters.before is not None:
        params.append(("timestamp", f"lt.{filters.before.isoformat()}"))
    return params


def _parse_total(content_range: Optional[str]) -> int:
    # Content-Range looks like "0-24/318" or "*/0"
    if not content_range or "/" not in content_range:
        raise StoreError(f"PostgREST returned no usable Content-Range header: {content_range!r}")
    total = content_range.rsplit("/", 1)[1]
    try:
        return int(total)
    except ValueError as e:
        raise StoreError(f"PostgREST returned an unknown total in Content-Range: {content_range!r}") from e


class PostgrestAlertStore:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        table: str = "saved_alerts",
        session: Optional[requests.Session] = None,
    ) -> None:
        self.endpoint = f"{base_url.rstrip('/')}/rest/v1/{table}"
        self.session = session or requests.Session()
        self.session.headers.update({
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        })

    @classmethod
    def from_settings(cls, settings: Settings) -> PostgrestAlertStore:
        settings.validate_for("store")
        return cls(
            base_url=settings.supabase_url,
            api_key=settings.supabase_service_role_key,
            table=settings.supabase_alerts_table,
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _send(
        self,
        method: str,
        params: Params,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> requests.Response:
        headers = {"Prefer": prefer} if prefer else {}
        try:
            response = self.session.request(
                method, self.endpoint, params=params, json=json,
                headers=headers, timeout=_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            raise StoreError(f"PostgREST {method} failed: {e}") from e

        if response.status_code == 409:
            raise DuplicateAlertError(f"PostgREST rejected duplicate row: {response.text}")
        if response.status_code >= 400:
            raise StoreError(
                f"PostgREST {method} returned {response.status_code}: {response.text}"
            )
        return response

    async def _request(self, method: str, params: Params, **kwargs: Any) -> requests.Response:
        return await asyncio.to_thread(self._send, method, params, **kwargs)

    @staticmethod
    def _json(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise StoreError(f"PostgREST returned a non-JSON body: {response.text[:200]!r}") from e

    @staticmethod
    def _to_alerts(rows: list[dict[str, Any]]) -> list[Alert]:
        alerts: list[Alert] = []
        for row in rows:
            try:
                alerts.append(Alert.model_validate(row))
            except ValidationError as e:
                logger.warning(
                    "postgrest_store.invalid_row",
                    extra={"alert_id": row.get("alert_id"), "error": str(e)},
                )
        return alerts

    # ------------------------------------------------------------------
    # AlertStore
    # ------------------------------------------------------------------

    async def insert(self, alert: Alert) -> Alert:
        await self._request(
            "POST", [], json=alert.model_dump(mode="json"), prefer="return=minimal"
        )
        return alert

    async def find_alerts(
        self, plate: str, alert_type: AlertType, start: datetime, end: datetime
    ) -> list[Alert]:
        return await self.select(AlertFilter(plate=plate, type=alert_type, start=start, end=end))

    async def select(self, filters: AlertFilter) -> list[Alert]:
        params = filter_params(filters) + [("select", "*"), ("order", "timestamp.desc")]
        if filters.limit is not None:
            params.append(("limit", str(filters.limit)))
        response = await self._request("GET", params)
        return self._to_alerts(self._json(response))

    async def count(self, filters: AlertFilter) -> int:
        params = filter_params(filters) + [("select", "alert_id")]
        response = await self._request("HEAD", params, prefer="count=exact")
        return _parse_total(response.headers.get("Content-Range"))

    async def update_status(self, alert_id: str, status: AlertStatus) -> Alert:
        response = await self._request(
            "PATCH",
            [("alert_id", f"eq.{alert_id}")],
            json={"status": status.value},
            prefer="return=representation",
        )
        updated = self._to_alerts(self._json(response))
        if not updated:
            raise AlertNotFoundError(f"alert '{alert_id}' not found")
        return updated[0]

    async def delete(self, filters: AlertFilter) -> int:
        if filters.limit is None:
            response = await self._request(
                "DELETE", filter_params(filters), prefer="return=representation"
            )
            deleted = len(self._json(response))
        else:
            # PostgREST can't limit a DELETE portably: pick the oldest ids first.
            params = filter_params(filters) + [
                ("select", "alert_id"),
                ("order", "timestamp.asc"),
                ("limit", str(filters.limit)),
            ]
            rows = self._json(await self._request("GET", params))
            ids = [row["alert_id"] for row in rows]
            if not ids:
                return 0
            quoted = ",".join(f'"{i}"' for i in ids)
            response = await self._request(
                "DELETE", [("alert_id", f"in.({quoted})")], prefer="return=representation"
            )
            deleted = len(self._json(response))

        logger.info("postgrest_store.deleted", extra={"count": deleted})
        return deleted
