"""Runtime configuration for the simulation engine.

Values come from ``COURIER_*`` environment variables, then a ``.env`` file in
the working directory, and fall back to the defaults below.
"""

from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from courier.contracts.user import RankDefinition


class RoutingConfig(BaseModel):
    max_segment_km: float = Field(default=500.0, gt=0)
    cruise_speed_kmh: float = Field(default=50.0, gt=0, description="Used to timestamp waypoints")


class WeatherConfig(BaseModel):
    base_url: str = "https://api.open-meteo.com/v1/forecast"
    cache_ttl_s: float = Field(default=600.0, gt=0)
    cache_bucket_deg: float = Field(default=0.1, gt=0)
    max_concurrency: int = Field(default=8, ge=1)
    timeout_s: float = Field(default=5.0, gt=0)
    reroute_storm_intensity: float = Field(default=0.6, ge=0, le=1)


class FlightEngineConfig(BaseModel):
    base_speed_kmh: float = Field(default=50.0, gt=0, description="Nominal duck cruise speed")
    tick_interval_s: float = Field(default=2.0, gt=0)
    weather_check_every_ticks: int = Field(default=150, ge=1)
    completed_retention: int = Field(default=1000, ge=0)


class DeliveryConfig(BaseModel):
    max_retries: int = Field(default=3, ge=0)
    base_delay_s: float = Field(default=1.0, gt=0)
    backoff_multiplier: float = Field(default=2.0, ge=1)
    max_delay_s: float = Field(default=30.0, gt=0)

    def retry_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0-based)."""
        return min(self.base_delay_s * self.backoff_multiplier ** attempt, self.max_delay_s)


class MatchingConfig(BaseModel):
    inactive_after_days: int = Field(default=14, ge=0)
    min_distance_km: float = Field(default=500.0, ge=0)
    max_candidates: int = Field(default=1000, ge=1)


class RewardConfig(BaseModel):
    points_per_km: float = Field(default=1.0, ge=0)
    new_location_bonus: int = Field(default=500, ge=0)
    long_distance_threshold_km: float = Field(default=10000.0, gt=0)
    long_distance_bonus: int = Field(default=5000, ge=0)
    weather_bonus_multiplier: float = Field(default=0.25, ge=0)


RANKS: list[RankDefinition] = [
    RankDefinition(name="Fledgling Courier", min_points=0),
    RankDefinition(name="Novice Navigator", min_points=1000, rewards=["weather_forecast"]),
    RankDefinition(name="Skilled Skywriter", min_points=5000, rewards=["priority_delivery", "custom_themes"]),
    RankDefinition(name="Veteran Voyager", min_points=15000, rewards=["route_preview", "message_scheduling"]),
    RankDefinition(name="Master Messenger", min_points=35000, rewards=["express_delivery", "location_history"]),
    RankDefinition(name="Elite Explorer", min_points=75000, rewards=["global_leaderboard", "premium_postcards"]),
    RankDefinition(name="Legendary Aviator", min_points=150000, rewards=["all_features", "exclusive_badges"]),
]


class Settings(BaseSettings):
    """All engine settings, one section per service.

    Override a single value with ``COURIER_{SECTION}__{FIELD}``, for example
    ``COURIER_WEATHER__TIMEOUT_S=2.5``.
    """

    model_config = SettingsConfigDict(
        env_prefix="COURIER_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    routing: RoutingConfig = Field(default_factory=RoutingConfig)
    weather: WeatherConfig = Field(default_factory=WeatherConfig)
    flight: FlightEngineConfig = Field(default_factory=FlightEngineConfig)
    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    rewards: RewardConfig = Field(default_factory=RewardConfig)
