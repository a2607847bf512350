"""Test doubles and well-known places shared by the test modules."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from courier.contracts.common import GeoPoint

T0 = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

LONDON = GeoPoint(latitude=51.5074, longitude=-0.1278, country="GB", state="England")
PARIS = GeoPoint(latitude=48.8566, longitude=2.3522, country="FR")
NEW_YORK = GeoPoint(latitude=40.7128, longitude=-74.0060, country="US", state="NY")
TOKYO = GeoPoint(latitude=35.6762, longitude=139.6503, country="JP")
SYDNEY = GeoPoint(latitude=-33.8688, longitude=151.2093, country="AU", state="NSW")


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def current_weather(code: int = 0, windspeed: float = 5.0, winddirection: float = 270.0) -> dict:
    """Open-Meteo ``current_weather=true`` response body."""
    return {
        "latitude": 0.0,
        "longitude": 0.0,
        "current_weather": {
            "time": "2025-06-01T12:00",
            "temperature": 15.0,
            "windspeed": windspeed,
            "winddirection": winddirection,
            "weathercode": code,
        },
    }
