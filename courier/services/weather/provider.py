"""Weather provider: cached current conditions plus their effect on speed.

Every lookup goes through a small in-memory cache keyed by a ~0.1 degree
location bucket. Upstream failures never reach the flight engine: the
provider logs them and answers with a neutral Clear sample instead.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

import httpx

from courier.config import WeatherConfig
from courier.contracts.common import GeoPoint
from courier.contracts.enums import WeatherKind
from courier.contracts.route import Route
from courier.contracts.weather import WeatherDetails, WeatherSample
from courier.services.weather.conditions import SPEED_MODIFIERS, classify
from courier.services.weather.openmeteo_client import OpenMeteoClient

logger = logging.getLogger(__name__)

# Maximum tailwind/headwind effect, as a fraction of base speed
MAX_WIND_EFFECT = 0.25
_WIND_FULL_SCALE_KMH = 50.0
_MIN_SPEED_MODIFIER = 0.1

SIGNIFICANT_CHANGE = 0.2


@dataclass
class _CacheEntry:
    sample: WeatherSample
    expires_at: datetime


class WeatherProvider:
    """Fetches, caches and interprets weather for flight simulation."""

    def __init__(
        self,
        client: OpenMeteoClient | None = None,
        config: WeatherConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._config = config or WeatherConfig()
        self._client = client or OpenMeteoClient(base_url=self._config.base_url)
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))
        self._cache: dict[tuple[int, int], _CacheEntry] = {}
        self._semaphore = asyncio.Semaphore(self._config.max_concurrency)

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def _cache_key(self, location: GeoPoint) -> tuple[int, int]:
        bucket = self._config.cache_bucket_deg
        return round(location.latitude / bucket), round(location.longitude / bucket)

    def default_sample(self, location: GeoPoint) -> WeatherSample:
        """Neutral Clear sample used whenever real data is unavailable."""
        return WeatherSample(
            kind=WeatherKind.CLEAR,
            intensity=0.0,
            speed_modifier=SPEED_MODIFIERS[WeatherKind.CLEAR],
            location=location,
            observed_at=self._clock(),
        )

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    async def _fetch_limited(self, location: GeoPoint) -> WeatherDetails:
        async with self._semaphore:
            return await self._client.get_current_weather(location.latitude, location.longitude)

    async def fetch_weather(self, location: GeoPoint) -> WeatherSample:
        """Current conditions at *location*; never raises for upstream failures."""
        key = self._cache_key(location)
        now = self._clock()

        entry = self._cache.get(key)
        if entry is not None:
            if entry.expires_at > now:
                return entry.sample
            # Expired entries are never served
            del self._cache[key]

        try:
            details = await asyncio.wait_for(
                self._fetch_limited(location), timeout=self._config.timeout_s
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Weather fetch timed out after %ss at (%.2f, %.2f), using clear",
                self._config.timeout_s, location.latitude, location.longitude,
            )
            return self.default_sample(location)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "Weather fetch failed at (%.2f, %.2f), using clear: %s",
                location.latitude, location.longitude, exc,
            )
            return self.default_sample(location)

        kind, intensity, modifier = classify(details)
        sample = WeatherSample(
            kind=kind,
            intensity=intensity,
            speed_modifier=modifier,
            location=location,
            observed_at=now,
            details=details,
        )
        self._cache[key] = _CacheEntry(
            sample=sample,
            expires_at=now + timedelta(seconds=self._config.cache_ttl_s),
        )
        logger.debug("Weather at %s: %s (%.2f)", key, sample.kind, sample.intensity)
        return sample

    async def fetch_weather_for_route(self, route: Route) -> list[WeatherSample]:
        """One sample per waypoint, fetched concurrently."""
        locations = [wp.location for wp in route.path]
        results = await asyncio.gather(
            *(self.fetch_weather(loc) for loc in locations),
            return_exceptions=True,
        )

        samples: list[WeatherSample] = []
        for location, result in zip(locations, results):
            if isinstance(result, Exception):
                logger.error("Weather lookup crashed at %s: %s", location, result)
                samples.append(self.default_sample(location))
            else:
                samples.append(result)
        return samples

    # ------------------------------------------------------------------
    # Interpretation
    # ------------------------------------------------------------------

    def calculate_flight_speed(
        self,
        base_speed_kmh: float,
        weather: WeatherSample | None,
        heading_deg: float | None = None,
    ) -> float:
        """Base speed scaled by the weather.

        With a known heading, Wind samples add a tailwind/headwind term of
        up to 25% depending on how the wind lines up with the heading.
        """
        if weather is None:
            return base_speed_kmh

        modifier = weather.speed_modifier
        details = weather.details
        if (
            weather.kind == WeatherKind.WIND
            and heading_deg is not None
            and details is not None
            and details.wind_speed_kmh
            and details.wind_direction_deg is not None
        ):
            # Meteorological direction is where the wind blows from
            blowing_to = (details.wind_direction_deg + 180.0) % 360.0
            alignment = math.cos(math.radians(heading_deg - blowing_to))
            strength = min(details.wind_speed_kmh / _WIND_FULL_SCALE_KMH, 1.0)
            modifier = max(_MIN_SPEED_MODIFIER, modifier + MAX_WIND_EFFECT * strength * alignment)

        return base_speed_kmh * modifier

    def should_recalculate_route(self, weather: WeatherSample | None) -> bool:
        """Only strong storms are worth a detour."""
        if weather is None:
            return False
        return (
            weather.kind == WeatherKind.STORM
            and weather.intensity > self._config.reroute_storm_intensity
        )

    @staticmethod
    def has_significant_change(
        old: WeatherSample | None,
        new: WeatherSample,
        threshold: float = SIGNIFICANT_CHANGE,
    ) -> bool:
        if old is None:
            return True
        return abs(new.speed_modifier - old.speed_modifier) > threshold

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def cleanup(self) -> int:
        """Drop expired cache entries. Returns how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._cache.items() if entry.expires_at <= now]
        for key in expired:
            del self._cache[key]
        if expired:
            logger.debug("Purged %d expired weather entries", len(expired))
        return len(expired)

    def clear_cache(self) -> None:
        self._cache.clear()

    async def aclose(self) -> None:
        await self._client.aclose()
