"""
Fagor (FlotasNet) client — EstadoActualFlota SOAP call.

The response carries one <DatosEstadoVehiculo> element per vehicle. Each is
flattened into a dict of child tag → text so the normalizer can treat it like
any other raw record. Namespaces are ignored: FlotasNet has served the same
payload under several namespace URIs.

A SOAP Fault raises VendorError. A well-formed response with no vehicles is
an empty fleet, not a failure.
"""

from __future__ import annotations

import asyncio
import logging
import re
import xml.etree.ElementTree as ET
from typing import Any
from xml.sax.saxutils import escape

import requests

from fleetwatch.config import Settings
from fleetwatch.integrations.errors import VendorError

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 20
_SOAP_NAMESPACE = "http://212.8.96.37/webservices/"
_SOAP_ACTION = f"{_SOAP_NAMESPACE}EstadoActualFlota"
_VEHICLE_TAG = "DatosEstadoVehiculo"
_FAULT_TAG = "Fault"
_HTML_TAG = re.compile(r"<[^>]*>")

_ENVELOPE = """<?xml version="1.0" encoding="utf-8"?>
<soap:Envelope xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
               xmlns:xsd="http://www.w3.org/2001/XMLSchema"
               xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/">
  <soap:Header>
    <AuthHeader xmlns="{ns}">
      <Username>{user}</Username>
      <Password>{password}</Password>
    </AuthHeader>
  </soap:Header>
  <soap:Body>
    <EstadoActualFlota xmlns="{ns}">
      <empresa>{company}</empresa>
    </EstadoActualFlota>
  </soap:Body>
</soap:Envelope>"""


def build_envelope(user: str, password: str, company: str) -> str:
    return _ENVELOPE.format(
        ns=_SOAP_NAMESPACE,
        user=escape(user),
        password=escape(password),
        company=escape(company),
    )


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _clean(tag: str, text: str) -> str:
    value = text.strip()
    if tag == "Sensores":
        value = _HTML_TAG.sub("", value.replace("&nbsp;", " ")).strip()
    return value


def parse_vehicles(xml_text: str) -> list[dict[str, Any]]:
    """Flatten every DatosEstadoVehiculo element into a dict."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise VendorError(f"Fagor returned malformed XML: {e}") from e

    records: list[dict[str, Any]] = []
    for element in root.iter():
        if _local_name(element.tag) == _FAULT_TAG:
            reason = next(
                (c.text for c in element.iter() if _local_name(c.tag) in ("faultstring", "Text") and c.text),
                "no faultstring",
            )
            raise VendorError(f"Fagor returned a SOAP fault: {reason.strip()}")
        if _local_name(element.tag) != _VEHICLE_TAG:
            continue
        record: dict[str, Any] = {}
        for child in element:
            name = _local_name(child.tag)
            record[name] = _clean(name, child.text or "")
        records.append(record)
    return records


def fetch_vehicles_sync(settings: Settings, session: requests.Session | None = None) -> list[dict[str, Any]]:
    settings.validate_for("fagor")
    http = session or requests
    body = build_envelope(settings.fagor_user, settings.fagor_password, settings.fagor_company)
    try:
        response = http.post(
            settings.fagor_api_url,
            data=body.encode("utf-8"),
            headers={
                "Content-Type": "text/xml; charset=utf-8",
                "SOAPAction": _SOAP_ACTION,
            },
            timeout=_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
    except requests.RequestException as e:
        raise VendorError(f"Fagor request failed: {e}") from e

    records = parse_vehicles(response.text)
    if not records:
        logger.info("fagor.no_vehicles")
        return records

    logger.info("fagor.fetched", extra={"records": len(records)})
    return records


async def fetch_vehicles(settings: Settings) -> list[dict[str, Any]]:
    """Fetch raw Fagor records without blocking the event loop."""
    return await asyncio.to_thread(fetch_vehicles_sync, settings)
