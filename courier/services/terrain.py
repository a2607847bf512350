"""Terrain lookup from fixed, approximate geographic bounding boxes.

Good enough to make oceans cheap and mountains expensive for the router;
not a land/sea mask.
"""

from __future__ import annotations

from courier.contracts.common import GeoPoint
from courier.contracts.enums import TerrainKind

# Speed factor per terrain: > 1 is easier, < 1 is harder
TERRAIN_MODIFIERS: dict[TerrainKind, float] = {
    TerrainKind.OCEAN: 1.2,
    TerrainKind.LAND: 1.0,
    TerrainKind.DESERT: 0.8,
    TerrainKind.MOUNTAIN: 0.7,
}

# Cruise altitude over each terrain, metres
TERRAIN_ALTITUDES_M: dict[TerrainKind, float] = {
    TerrainKind.OCEAN: 100.0,
    TerrainKind.LAND: 600.0,
    TerrainKind.DESERT: 1000.0,
    TerrainKind.MOUNTAIN: 3000.0,
}

# (min_lat, max_lat, min_lon, max_lon), bounds exclusive
_Box = tuple[float, float, float, float]

_MOUNTAINS: list[_Box] = [
    (35.0, 45.0, -115.0, -105.0),  # Rockies
    (45.5, 47.5, 6.0, 14.0),  # Alps
    (27.0, 32.0, 75.0, 85.0),  # Himalayas
]

_DESERTS: list[_Box] = [
    (18.0, 28.0, -5.0, 25.0),  # Sahara
    (18.0, 28.0, 38.0, 52.0),  # Arabian
    (28.0, 38.0, -118.0, -108.0),  # south-western US
]


def _inside(lat: float, lon: float, box: _Box) -> bool:
    min_lat, max_lat, min_lon, max_lon = box
    return min_lat < lat < max_lat and min_lon < lon < max_lon


def _is_ocean(lat: float, lon: float) -> bool:
    # Atlantic
    if -60 < lon < -10 and 10 < lat < 60:
        return True
    # Pacific, both sides of the antimeridian
    if (lon > 140 or lon < -140) and abs(lat) < 60:
        return True
    # Indian
    return 60 < lon < 100 and -40 < lat < 20


def classify_terrain(point: GeoPoint) -> TerrainKind:
    """Ocean wins over mountain, mountain over desert, anything else is land."""
    lat, lon = point.latitude, point.longitude
    if _is_ocean(lat, lon):
        return TerrainKind.OCEAN
    if any(_inside(lat, lon, box) for box in _MOUNTAINS):
        return TerrainKind.MOUNTAIN
    if any(_inside(lat, lon, box) for box in _DESERTS):
        return TerrainKind.DESERT
    return TerrainKind.LAND


def terrain_altitude(kind: TerrainKind) -> float:
    return TERRAIN_ALTITUDES_M[TerrainKind(kind)]


def terrain_modifier(kind: TerrainKind) -> float:
    return TERRAIN_MODIFIERS[TerrainKind(kind)]
