"""HTTP fetcher error mapping tests (no network)."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import httpx
import pytest

from forecast_accuracy.exceptions import TransportError
from forecast_accuracy.ingestion import HttpFetcher


def _make_settings(**overrides: Any) -> Any:
    defaults = {
        "http_timeout_seconds": 5.0,
        "http_user_agent": "forecast-accuracy-tests/0.1 (contact: test@example.com)",
    }
    defaults.update(overrides)
    return SimpleNamespace(**defaults)


def _fetcher(handler: Any) -> HttpFetcher:
    return HttpFetcher(settings=_make_settings(), transport=httpx.MockTransport(handler))


def test_returns_body_and_sends_user_agent() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text='[{"Key": "264884"}]')

    with _fetcher(handler) as fetcher:
        body = fetcher.get("https://dataservice.accuweather.com/locations/v1?apikey=secret")

    assert body == '[{"Key": "264884"}]'
    assert seen[0].headers["User-Agent"].startswith("forecast-accuracy-tests/0.1")


def test_http_error_status_raises_transport_error_without_key() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="Api Authorization failed")

    with _fetcher(handler) as fetcher:
        with pytest.raises(TransportError) as excinfo:
            fetcher.get("https://api.openweathermap.org/data/2.5/forecast?appid=supersecret")

    assert excinfo.value.status_code == 401
    assert "supersecret" not in str(excinfo.value)
    assert "appid=[REDACTED]" in str(excinfo.value)


def test_network_error_raises_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with _fetcher(handler) as fetcher:
        with pytest.raises(TransportError, match="connection refused") as excinfo:
            fetcher.get("https://api.met.no/weatherapi/locationforecast/2.0/compact")

    assert excinfo.value.status_code is None
