"""Tests for the Open-Meteo client with mocked HTTP responses."""

from __future__ import annotations

import httpx
import pytest

from courier.services.weather.openmeteo_client import OpenMeteoClient
from tests.helpers import current_weather


class TestOpenMeteoClient:
    async def test_parses_current_weather(self):
        transport = httpx.MockTransport(
            lambda req: httpx.Response(200, json=current_weather(code=61, windspeed=12.5, winddirection=200))
        )
        async with httpx.AsyncClient(transport=transport) as http:
            client = OpenMeteoClient(http_client=http)
            details = await client.get_current_weather(51.5, -0.13)
        assert details.weather_code == 61
        assert details.wind_speed_kmh == 12.5
        assert details.wind_direction_deg == 200
        assert details.temperature == 15.0

    async def test_request_params(self):
        captured: list[httpx.Request] = []

        def handler(req: httpx.Request) -> httpx.Response:
            captured.append(req)
            return httpx.Response(200, json=current_weather())

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = OpenMeteoClient(http_client=http)
            await client.get_current_weather(48.85, 2.35)

        params = captured[0].url.params
        assert captured[0].url.path == "/v1/forecast"
        assert params["current_weather"] == "true"
        assert params["latitude"] == "48.85"
        assert params["longitude"] == "2.35"

    async def test_http_error_raises(self):
        transport = httpx.MockTransport(lambda req: httpx.Response(503))
        async with httpx.AsyncClient(transport=transport) as http:
            client = OpenMeteoClient(http_client=http)
            with pytest.raises(httpx.HTTPStatusError):
                await client.get_current_weather(0, 0)

    async def test_missing_block_raises(self):
        transport = httpx.MockTransport(lambda req: httpx.Response(200, json={"latitude": 0}))
        async with httpx.AsyncClient(transport=transport) as http:
            client = OpenMeteoClient(http_client=http)
            with pytest.raises(ValueError, match="current_weather"):
                await client.get_current_weather(0, 0)

    @pytest.mark.parametrize(
        "body",
        [
            ["oops"],
            {"current_weather": [1, 2]},
            {"current_weather": "sunny"},
            {"current_weather": {"weathercode": [61]}},
            {"current_weather": {"windspeed": "fast"}},
        ],
    )
    async def test_malformed_body_raises_value_error(self, body):
        transport = httpx.MockTransport(lambda req: httpx.Response(200, json=body))
        async with httpx.AsyncClient(transport=transport) as http:
            client = OpenMeteoClient(http_client=http)
            with pytest.raises(ValueError):
                await client.get_current_weather(0, 0)
