"""Base classes and shared types for Tailwind Courier contracts.

Unit conventions (all contracts):
- **Distances**: kilometres (suffix ``_km``)
- **Speeds**: km/h (suffix ``_kmh``)
- **Altitudes**: metres (suffix ``_m``)
- **Headings/angles**: degrees (suffix ``_deg``)
- **Durations**: seconds (suffix ``_s``)
- **Datetimes**: always UTC, ISO 8601 in serialized form
- **Coordinates**: WGS84 decimal degrees
"""

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FirestoreModel(BaseModel):
    """Base model with Firestore-friendly serialization.

    - Enums serialize as string values (Firestore stores strings).
    - ``to_firestore()`` produces a JSON-safe dict (datetimes as ISO 8601).
    - ``from_firestore()`` hydrates from a Firestore document dict.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_firestore(self) -> dict[str, Any]:
        """Dump to Firestore-compatible dict."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_firestore(cls, data: dict[str, Any]) -> "FirestoreModel":
        """Create model instance from Firestore document dict."""
        return cls.model_validate(data)


class GeoPoint(FirestoreModel):
    """WGS84 geographic coordinate with optional region tags.

    ``state`` and ``country`` are the regions a user chose to share; they
    feed the location-discovery bonus on delivery.
    """

    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    state: str | None = None
    country: str | None = None
    is_anonymous: bool = False

    model_config = ConfigDict(frozen=True)

    @field_validator("latitude", "longitude")
    @classmethod
    def require_finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("coordinate must be finite")
        return v

    def anonymized(self) -> "GeoPoint":
        """Truncate precision to two decimals (~1 km)."""
        return self.model_copy(update={
            "latitude": round(self.latitude, 2),
            "longitude": round(self.longitude, 2),
            "is_anonymous": True,
        })

    def same_position(self, other: "GeoPoint") -> bool:
        return self.latitude == other.latitude and self.longitude == other.longitude
