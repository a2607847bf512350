"""Shared fixtures: fake clock, in-memory Firestore, mocked Open-Meteo."""

from __future__ import annotations

import httpx
import pytest

from courier.config import WeatherConfig
from courier.services.weather.openmeteo_client import OpenMeteoClient
from courier.services.weather.provider import WeatherProvider
from tests.helpers import FakeClock, current_weather
from tests.persistence.fake_firestore import FakeFirestoreClient


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_client():
    """In-memory Firestore fake, shared across all repos in a single test."""
    return FakeFirestoreClient()


@pytest.fixture
def weather_conditions():
    """Mutable upstream state: tests change it to change the weather."""
    return {"code": 0, "windspeed": 5.0, "winddirection": 270.0, "status": 200, "requests": 0, "body": None}


@pytest.fixture
def weather_http(weather_conditions):
    def handler(request: httpx.Request) -> httpx.Response:
        weather_conditions["requests"] += 1
        if weather_conditions["status"] != 200:
            return httpx.Response(weather_conditions["status"], json={"error": True})
        if weather_conditions["body"] is not None:
            return httpx.Response(200, json=weather_conditions["body"])
        return httpx.Response(200, json=current_weather(
            weather_conditions["code"],
            weather_conditions["windspeed"],
            weather_conditions["winddirection"],
        ))

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def weather_provider(weather_http, clock):
    return WeatherProvider(OpenMeteoClient(weather_http), WeatherConfig(), clock=clock)
