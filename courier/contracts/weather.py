"""Weather samples: one current-conditions reading per location bucket."""

from datetime import datetime

from pydantic import Field

from courier.contracts.common import FirestoreModel, GeoPoint
from courier.contracts.enums import WeatherKind


class WeatherDetails(FirestoreModel):
    """Raw upstream fields kept alongside the classified sample."""

    temperature: float | None = Field(default=None, description="deg C")
    wind_speed_kmh: float | None = Field(default=None, ge=0)
    wind_direction_deg: float | None = Field(default=None, ge=0, le=360)
    weather_code: int | None = None


class WeatherSample(FirestoreModel):
    """Classified weather at a location, with its effect on flight speed."""

    kind: WeatherKind
    intensity: float = Field(..., ge=0.0, le=1.0)
    speed_modifier: float = Field(..., gt=0)
    location: GeoPoint
    observed_at: datetime
    details: WeatherDetails | None = None

    @property
    def is_adverse(self) -> bool:
        if self.kind in (WeatherKind.STORM, WeatherKind.RAIN):
            return True
        return self.kind == WeatherKind.WIND and self.intensity > 0.7
