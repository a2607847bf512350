"""Waypoint and Route: the terrain-aware path a flight follows.

Routes are **calculated** by the routing engine and embedded in a message's
journey data; they have no collection of their own.
"""

from datetime import datetime
from typing import Self

from pydantic import Field, model_validator

from courier.contracts.common import FirestoreModel, GeoPoint
from courier.contracts.enums import TerrainKind


class Waypoint(FirestoreModel):
    """A discrete point along a route with terrain, altitude and timestamp."""

    id: str = Field(..., min_length=1)
    location: GeoPoint
    terrain: TerrainKind
    altitude_m: float = Field(..., gt=0)
    timestamp: datetime


class Route(FirestoreModel):
    """Ordered waypoints plus the totals the path search produced.

    ``total_cost`` is distance scaled by per-terrain difficulty, the
    quantity Dijkstra minimises, not raw distance.
    """

    path: list[Waypoint] = Field(..., min_length=2)
    total_distance_km: float = Field(..., ge=0)
    total_cost: float = Field(..., ge=0)

    @model_validator(mode="after")
    def validate_timestamps(self) -> Self:
        for prev, nxt in zip(self.path, self.path[1:]):
            if nxt.timestamp < prev.timestamp:
                raise ValueError(
                    f"Waypoint {nxt.id} timestamp precedes {prev.id}"
                )
        return self

    @property
    def start(self) -> GeoPoint:
        return self.path[0].location

    @property
    def end(self) -> GeoPoint:
        return self.path[-1].location
