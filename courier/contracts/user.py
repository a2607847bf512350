"""User: a participant who sends and receives flights.

Stored at: ``/users/{user_id}``
"""

from datetime import datetime, timezone

from pydantic import Field, field_validator

from courier.contracts.common import FirestoreModel, GeoPoint


class User(FirestoreModel):
    """Profile plus the cumulative statistics delivery maintains."""

    id: str | None = None
    username: str = Field(..., min_length=1, max_length=50)
    last_active: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
    opt_out_random: bool = False
    current_location: GeoPoint | None = None

    total_journey_points: int = Field(default=0, ge=0)
    current_rank: str = "Fledgling Courier"
    total_flights_sent: int = Field(default=0, ge=0)
    total_flights_received: int = Field(default=0, ge=0)
    total_distance_traveled_km: float = Field(default=0.0, ge=0)
    countries_visited: list[str] = Field(default_factory=list)
    states_visited: list[str] = Field(default_factory=list)
    achievements: list[str] = Field(default_factory=list)

    @field_validator("username", mode="before")
    @classmethod
    def strip_username(cls, v: str) -> str:
        return v.strip()


class RankDefinition(FirestoreModel):
    """One row of the rank table: name, threshold and unlocked rewards."""

    name: str
    min_points: int = Field(..., ge=0)
    rewards: list[str] = Field(default_factory=list)


class RankAdvancement(FirestoreModel):
    previous_rank: str
    new_rank: str
    points_earned: int
    total_points: int
    rewards_unlocked: list[str] = Field(default_factory=list)


class EligibleCandidate(FirestoreModel):
    """A user who passed every matching filter, with its selection weight."""

    user: User
    distance_km: float = Field(..., ge=0)
    weight: float = Field(..., gt=0)


class MatchResult(FirestoreModel):
    """Outcome of a random-recipient lookup."""

    recipient: User
    distance_km: float
    total_candidates: int
    eligible_candidates: int
