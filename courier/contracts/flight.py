"""FlightProgress and JourneyData: observable state of a flight.

``FlightProgress`` is a **calculated** snapshot handed to subscribers and to
delivery; never persisted on its own. ``JourneyData`` is embedded in the
message document at ``/messages/{message_id}``.
"""

from datetime import datetime

from pydantic import Field

from courier.contracts.common import FirestoreModel, GeoPoint
from courier.contracts.route import Waypoint
from courier.contracts.weather import WeatherSample


class FlightProgress(FirestoreModel):
    """Point-in-time snapshot of one flight."""

    message_id: str
    current_position: GeoPoint
    progress_pct: float = Field(..., ge=0.0, le=100.0)
    estimated_arrival: datetime
    current_weather: WeatherSample | None = None

    speed_kmh: float | None = Field(default=None, ge=0)
    total_distance_km: float | None = Field(default=None, ge=0)
    distance_covered_km: float | None = Field(default=None, ge=0)
    weather_events: list[WeatherSample] = Field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.progress_pct >= 100.0


class JourneyData(FirestoreModel):
    """Route and outcome of a message's flight, stored with the message."""

    route: list[Waypoint] = Field(default_factory=list)
    total_distance_km: float = Field(..., ge=0)
    estimated_duration_s: float = Field(..., ge=0)
    estimated_arrival: datetime | None = None
    weather_events: list[WeatherSample] = Field(default_factory=list)
    current_progress: float = Field(default=0.0, ge=0.0, le=100.0)
    journey_points_earned: int = Field(default=0, ge=0)
    final_position: GeoPoint | None = None
    delivered_at: datetime | None = None
