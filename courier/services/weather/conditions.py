"""WMO weather-code classification for flight simulation.

Maps an Open-Meteo ``current_weather`` reading onto the four weather kinds
the flight engine understands, with an intensity in [0, 1] and a speed
modifier applied to the duck's base speed.
"""

from __future__ import annotations

from typing import NamedTuple

from courier.contracts.enums import WeatherKind
from courier.contracts.weather import WeatherDetails, WeatherSample

# Base speed factor per kind; Wind is resolved against the heading later
SPEED_MODIFIERS: dict[WeatherKind, float] = {
    WeatherKind.CLEAR: 1.0,
    WeatherKind.RAIN: 0.75,
    WeatherKind.STORM: 0.5,
    WeatherKind.WIND: 1.0,
}

_FREEZING_FACTOR = 0.8  # freezing drizzle / rain
_SNOW_FACTOR = 0.9
_FOG_FACTOR = 0.8

STRONG_WIND_KMH = 25.0
_WIND_FULL_SCALE_KMH = 50.0


class Classification(NamedTuple):
    kind: WeatherKind
    intensity: float
    speed_modifier: float


def _rain(intensity: float, factor: float = 1.0) -> Classification:
    return Classification(
        WeatherKind.RAIN,
        min(1.0, intensity),
        SPEED_MODIFIERS[WeatherKind.RAIN] * factor,
    )


def _by_code(code: int) -> Classification | None:
    """Classification for a precipitation / fog / storm code, else None."""
    if code in (45, 48):
        return Classification(WeatherKind.WIND, 0.3, SPEED_MODIFIERS[WeatherKind.WIND] * _FOG_FACTOR)
    if code in (51, 53, 55):  # drizzle
        return _rain((code - 51) / 4 + 0.3)
    if code in (56, 57):  # freezing drizzle
        return _rain(0.4 if code == 56 else 0.6, _FREEZING_FACTOR)
    if code in (61, 63, 65):
        return _rain((code - 61) / 4 + 0.5)
    if code in (66, 67):  # freezing rain
        return _rain(0.6 if code == 66 else 0.8, _FREEZING_FACTOR)
    if code in (71, 73, 75):  # snow
        return _rain((code - 71) / 4 + 0.4, _SNOW_FACTOR)
    if code == 77:  # snow grains
        return _rain(0.5, _SNOW_FACTOR)
    if code in (80, 81, 82):  # showers
        return _rain((code - 80) / 2 + 0.6)
    if code in (85, 86):  # snow showers
        return _rain(0.5 if code == 85 else 0.7, _SNOW_FACTOR)
    if code == 95:
        return Classification(WeatherKind.STORM, 0.7, SPEED_MODIFIERS[WeatherKind.STORM])
    if code in (96, 99):  # thunderstorm with hail
        return Classification(WeatherKind.STORM, 0.8 if code == 96 else 1.0, SPEED_MODIFIERS[WeatherKind.STORM])
    return None


def classify(details: WeatherDetails) -> Classification:
    """Classify an upstream reading.

    Precipitation, fog and thunderstorm codes win. Otherwise a wind above
    25 km/h makes it Wind; anything else is Clear, with codes 1-3 (mainly
    clear to overcast) mapped to a cloudiness intensity.
    """
    code = details.weather_code
    if code is not None:
        found = _by_code(code)
        if found is not None:
            return found

    wind = details.wind_speed_kmh or 0.0
    if wind > STRONG_WIND_KMH:
        return Classification(
            WeatherKind.WIND,
            min(1.0, wind / _WIND_FULL_SCALE_KMH),
            SPEED_MODIFIERS[WeatherKind.WIND],
        )

    cloudiness = code / 3 if code in (1, 2, 3) else 0.0
    return Classification(WeatherKind.CLEAR, cloudiness, SPEED_MODIFIERS[WeatherKind.CLEAR])


def _intensity_word(intensity: float) -> str:
    if intensity > 0.7:
        return "severe"
    if intensity > 0.4:
        return "moderate"
    return "light"


def describe_weather(sample: WeatherSample) -> str:
    """Short human-readable description, e.g. ``"moderate rain"``."""
    code = sample.details.weather_code if sample.details else None
    word = _intensity_word(sample.intensity)

    if sample.kind == WeatherKind.STORM:
        if code == 96:
            return "thunderstorm with slight hail"
        if code == 99:
            return "thunderstorm with heavy hail"
        return f"{word} thunderstorm"

    if sample.kind == WeatherKind.RAIN:
        if code is None:
            return f"{word} rain"
        if 51 <= code <= 55:
            return f"{word} drizzle"
        if code in (56, 57):
            return f"{word} freezing drizzle"
        if code in (66, 67):
            return f"{word} freezing rain"
        if 71 <= code <= 75:
            return f"{word} snow"
        if code == 77:
            return "snow grains"
        if code == 82:
            return "violent rain showers"
        if 80 <= code <= 81:
            return f"{word} rain showers"
        if code in (85, 86):
            return f"{word} snow showers"
        return f"{word} rain"

    if sample.kind == WeatherKind.WIND:
        if code == 45:
            return "fog"
        if code == 48:
            return "freezing fog"
        return f"{word} winds"

    if sample.intensity > 0.8:
        return "overcast"
    if sample.intensity > 0.4:
        return "partly cloudy"
    if sample.intensity > 0:
        return "mainly clear"
    return "clear skies"
