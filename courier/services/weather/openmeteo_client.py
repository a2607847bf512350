"""Open-Meteo API client for current conditions."""

from __future__ import annotations

import httpx

from courier.contracts.weather import WeatherDetails

BASE_URL = "https://api.open-meteo.com/v1/forecast"


class OpenMeteoClient:
    """Async HTTP client for the Open-Meteo forecast API."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        base_url: str = BASE_URL,
    ):
        self._client = http_client or httpx.AsyncClient(timeout=10.0)
        self._base_url = base_url

    async def get_current_weather(self, latitude: float, longitude: float) -> WeatherDetails:
        """Fetch the current-conditions block for a single point.

        Raises ``httpx.HTTPError`` on transport or status errors and
        ``ValueError`` when the body is not a usable ``current_weather`` object.
        """
        params = {
            "latitude": latitude,
            "longitude": longitude,
            "current_weather": "true",
            "windspeed_unit": "kmh",
        }
        resp = await self._client.get(self._base_url, params=params)
        resp.raise_for_status()
        return _parse_current(resp.json())

    async def aclose(self) -> None:
        await self._client.aclose()


def _parse_current(data: object) -> WeatherDetails:
    """Parse the ``current_weather`` block into WeatherDetails.

    Raises ``ValueError`` for any body that does not have the expected shape.
    """
    if not isinstance(data, dict):
        raise ValueError(f"Open-Meteo response is a {type(data).__name__}, not an object")
    current = data.get("current_weather")
    if not current:
        raise ValueError("Open-Meteo response has no current_weather block")
    if not isinstance(current, dict):
        raise ValueError(f"Open-Meteo current_weather is a {type(current).__name__}, not an object")

    code = current.get("weathercode")
    try:
        weather_code = int(code) if code is not None else None
    except TypeError as exc:
        raise ValueError(f"Open-Meteo weathercode {code!r} is not a number") from exc
    return WeatherDetails(
        temperature=current.get("temperature"),
        wind_speed_kmh=current.get("windspeed"),
        wind_direction_deg=current.get("winddirection"),
        weather_code=weather_code,
    )
