"""Tests for fleetwatch/integrations/fagor.py — FlotasNet SOAP client."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests

from fleetwatch.config import Settings
from fleetwatch.integrations import fagor
from fleetwatch.integrations.errors import VendorError

SOAP_RESPONSE = """<?xml version="1.0" encoding="utf-8"?>
<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/">
  <soap:Body>
    <EstadoActualFlotaResponse xmlns="http://212.8.96.37/webservices/">
      <EstadoActualFlotaResult>
        <DatosEstadoVehiculo>
          <Codigo>7781</Codigo>
          <Matricula>XYZ999</Matricula>
          <Velocidad>0</Velocidad>
          <Latitud>40,4168</Latitud>
          <Longitud>-3,7038</Longitud>
          <Evento>BOTON PANICO ACTIVADO</Evento>
          <Sensores>&lt;b&gt;Temp&lt;/b&gt;&amp;nbsp;4C</Sensores>
        </DatosEstadoVehiculo>
        <DatosEstadoVehiculo>
          <Codigo>7782</Codigo>
          <Matricula>LMN345</Matricula>
          <Velocidad>61,5</Velocidad>
          <Evento />
        </DatosEstadoVehiculo>
      </EstadoActualFlotaResult>
    </EstadoActualFlotaResponse>
  </soap:Body>
</soap:Envelope>"""

EMPTY_RESPONSE = """<?xml version="1.0" encoding="utf-8"?>
<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/">
  <soap:Body><EstadoActualFlotaResponse xmlns="http://212.8.96.37/webservices/" /></soap:Body>
</soap:Envelope>"""

FAULT_RESPONSE = """<?xml version="1.0" encoding="utf-8"?>
<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/">
  <soap:Body>
    <soap:Fault>
      <faultcode>soap:Client</faultcode>
      <faultstring>Invalid credentials</faultstring>
    </soap:Fault>
  </soap:Body>
</soap:Envelope>"""


def _settings() -> Settings:
    return Settings(fagor_user="fleet", fagor_password="p&ss<1>", fagor_company="ACME", _env_file=None)


def make_session(text: str) -> MagicMock:
    session = MagicMock()
    response = MagicMock()
    response.text = text
    session.post.return_value = response
    return session


class TestBuildEnvelope:
    def test_contains_credentials_and_company(self):
        body = fagor.build_envelope("fleet", "secret", "ACME")
        assert "<Username>fleet</Username>" in body
        assert "<Password>secret</Password>" in body
        assert "<empresa>ACME</empresa>" in body
        assert "EstadoActualFlota" in body

    def test_escapes_xml_characters(self):
        body = fagor.build_envelope("fleet", "p&ss<1>", "ACME")
        assert "<Password>p&amp;ss&lt;1&gt;</Password>" in body


class TestParseVehicles:
    def test_flattens_each_vehicle(self):
        records = fagor.parse_vehicles(SOAP_RESPONSE)
        assert len(records) == 2
        assert records[0]["Matricula"] == "XYZ999"
        assert records[0]["Latitud"] == "40,4168"
        assert records[0]["Evento"] == "BOTON PANICO ACTIVADO"
        assert records[1]["Velocidad"] == "61,5"

    def test_empty_element_is_empty_string(self):
        assert fagor.parse_vehicles(SOAP_RESPONSE)[1]["Evento"] == ""

    def test_sensor_html_stripped(self):
        assert fagor.parse_vehicles(SOAP_RESPONSE)[0]["Sensores"] == "Temp 4C"

    def test_namespace_agnostic(self):
        plain = "<root><DatosEstadoVehiculo><Matricula>ABC</Matricula></DatosEstadoVehiculo></root>"
        assert fagor.parse_vehicles(plain) == [{"Matricula": "ABC"}]

    def test_malformed_xml(self):
        with pytest.raises(VendorError, match="malformed XML"):
            fagor.parse_vehicles("<soap:Envelope><unclosed>")


class TestFetchVehiclesSync:
    def test_posts_soap_request(self):
        session = make_session(SOAP_RESPONSE)

        records = fagor.fetch_vehicles_sync(_settings(), session=session)

        assert len(records) == 2
        args, kwargs = session.post.call_args
        assert args[0] == "https://www.flotasnet.com/servicios/EstadoVehiculo.asmx"
        assert kwargs["headers"]["SOAPAction"].endswith("EstadoActualFlota")
        assert kwargs["headers"]["Content-Type"].startswith("text/xml")
        assert b"<empresa>ACME</empresa>" in kwargs["data"]

    def test_no_vehicles_is_an_empty_fleet(self):
        assert fagor.fetch_vehicles_sync(_settings(), session=make_session(EMPTY_RESPONSE)) == []

    def test_soap_fault_is_an_error(self):
        with pytest.raises(VendorError, match="Invalid credentials"):
            fagor.fetch_vehicles_sync(_settings(), session=make_session(FAULT_RESPONSE))

    def test_missing_company(self):
        settings = Settings(fagor_user="fleet", fagor_password="secret", _env_file=None)
        with pytest.raises(RuntimeError, match="FAGOR_COMPANY"):
            fagor.fetch_vehicles_sync(settings, session=MagicMock())

    def test_transport_error_wrapped(self):
        session = MagicMock()
        session.post.side_effect = requests.Timeout("read timed out")
        with pytest.raises(VendorError, match="timed out"):
            fagor.fetch_vehicles_sync(_settings(), session=session)


class TestFetchVehicles:
    @pytest.mark.asyncio
    async def test_runs_sync_client(self):
        settings = _settings()
        with patch("fleetwatch.integrations.fagor.fetch_vehicles_sync", return_value=[{"Codigo": "1"}]) as sync:
            assert await fagor.fetch_vehicles(settings) == [{"Codigo": "1"}]
        sync.assert_called_once_with(settings)
