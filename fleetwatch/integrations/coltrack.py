"""
Coltrack client — last known position of every vehicle on the account.

POST with HTTP Basic auth. A healthy response looks like
    {"status": "OK", "message": {"data": [ {...}, ... ]}}
Older deployments return the record list bare; both are accepted.
Records are returned raw; the normalizer owns field mapping.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import requests

from fleetwatch.config import Settings
from fleetwatch.integrations.errors import VendorError

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 15


def extract_records(payload: Any) -> list[dict[str, Any]]:
    """Pull the vehicle records out of a decoded Coltrack response."""
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        raise VendorError(f"Coltrack: unexpected response type {type(payload).__name__}")
    if payload.get("status") != "OK":
        raise VendorError(f"Coltrack: response status is {payload.get('status')!r}, expected 'OK'")
    message = payload.get("message") or {}
    data = message.get("data") if isinstance(message, dict) else None
    if not isinstance(data, list):
        raise VendorError("Coltrack: response has no message.data list")
    return data


def fetch_vehicles_sync(settings: Settings, session: requests.Session | None = None) -> list[dict[str, Any]]:
    settings.validate_for("coltrack")
    http = session or requests
    try:
        response = http.post(
            settings.coltrack_api_url,
            auth=(settings.coltrack_user, settings.coltrack_password),
            timeout=_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        payload = response.json()
    except requests.RequestException as e:
        raise VendorError(f"Coltrack request failed: {e}") from e
    except ValueError as e:
        raise VendorError(f"Coltrack returned invalid JSON: {e}") from e

    records = extract_records(payload)
    logger.info("coltrack.fetched", extra={"records": len(records)})
    return records


async def fetch_vehicles(settings: Settings) -> list[dict[str, Any]]:
    """Fetch raw Coltrack records without blocking the event loop."""
    return await asyncio.to_thread(fetch_vehicles_sync, settings)
