"""Tests for ordering.services.geocoding."""

import httpx
import pytest

from ordering.services.geocoding import fallback_address, reverse_geocode


@pytest.fixture
def geocoder_on(app):
    app.config["GEOCODER_ENABLED"] = True
    return app


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_returns_display_name(geocoder_on):
    seen = {}

    def handler(request):
        seen["params"] = dict(request.url.params)
        seen["ua"] = request.headers.get("user-agent")
        return httpx.Response(200, json={"display_name": "Av. Providencia 1234, Santiago"})

    assert reverse_geocode(-33.43, -70.61, client=_client(handler)) == "Av. Providencia 1234, Santiago"
    assert seen["params"]["lat"] == "-33.43"
    assert seen["params"]["lon"] == "-70.61"
    assert seen["ua"] == geocoder_on.config["GEOCODER_USER_AGENT"]


def test_http_error_falls_back(geocoder_on):
    client = _client(lambda request: httpx.Response(503))
    assert reverse_geocode(-33.43, -70.61, client=client) == fallback_address(-33.43, -70.61)


def test_timeout_falls_back(geocoder_on):
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    assert reverse_geocode(1.0, 2.0, client=_client(handler)) == "Location: 1.000000, 2.000000"


def test_bad_payload_falls_back(geocoder_on):
    not_json = _client(lambda request: httpx.Response(200, text="<html>"))
    no_name = _client(lambda request: httpx.Response(200, json={"error": "Unable to geocode"}))
    assert reverse_geocode(1.0, 2.0, client=not_json) == fallback_address(1.0, 2.0)
    assert reverse_geocode(1.0, 2.0, client=no_name) == fallback_address(1.0, 2.0)


def test_disabled_never_calls_out(app):
    def handler(request):
        raise AssertionError("geocoder should not be called")

    assert reverse_geocode(1.0, 2.0, client=_client(handler)) == fallback_address(1.0, 2.0)
