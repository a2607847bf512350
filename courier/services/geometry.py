"""Spherical-Earth geometry: distance, bearing, projection, midpoint.

Pure functions on ``GeoPoint``. Mean Earth radius 6371 km.
"""

from __future__ import annotations

import math

from courier.contracts.common import GeoPoint
from courier.contracts.enums import DistanceCategory

EARTH_RADIUS_KM = 6371.0
TOO_BORING_DISTANCE_KM = 500.0

# Weight multipliers for recipient matching, longest distances favoured
DISTANCE_WEIGHTS: dict[DistanceCategory, float] = {
    DistanceCategory.LOCAL: 0.1,
    DistanceCategory.REGIONAL: 0.3,
    DistanceCategory.NATIONAL: 1.0,
    DistanceCategory.CONTINENTAL: 2.0,
    DistanceCategory.INTERCONTINENTAL: 3.0,
}


def _normalize_lon(lon: float) -> float:
    return (lon + 540.0) % 360.0 - 180.0


def distance_km(a: GeoPoint, b: GeoPoint) -> float:
    """Haversine great-circle distance in kilometres."""
    la1, la2 = math.radians(a.latitude), math.radians(b.latitude)
    dlat = la2 - la1
    dlon = math.radians(b.longitude - a.longitude)
    h = math.sin(dlat / 2) ** 2 + math.cos(la1) * math.cos(la2) * math.sin(dlon / 2) ** 2
    # Rounding can push h slightly outside [0, 1] near antipodes
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def bearing_deg(a: GeoPoint, b: GeoPoint) -> float:
    """Initial bearing (forward azimuth) from *a* to *b*, in [0, 360).

    Undefined for coincident points; returns 0.0 there.
    """
    if a.same_position(b):
        return 0.0
    la1, la2 = math.radians(a.latitude), math.radians(b.latitude)
    dlon = math.radians(b.longitude - a.longitude)
    y = math.sin(dlon) * math.cos(la2)
    x = math.cos(la1) * math.sin(la2) - math.sin(la1) * math.cos(la2) * math.cos(dlon)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def destination(start: GeoPoint, distance: float, bearing: float) -> GeoPoint:
    """Point reached travelling *distance* km from *start* on initial *bearing*."""
    la1 = math.radians(start.latitude)
    lo1 = math.radians(start.longitude)
    brg = math.radians(bearing)
    ang = distance / EARTH_RADIUS_KM

    sin_la2 = math.sin(la1) * math.cos(ang) + math.cos(la1) * math.sin(ang) * math.cos(brg)
    la2 = math.asin(min(1.0, max(-1.0, sin_la2)))
    lo2 = lo1 + math.atan2(
        math.sin(brg) * math.sin(ang) * math.cos(la1),
        math.cos(ang) - math.sin(la1) * math.sin(la2),
    )
    return GeoPoint(
        latitude=math.degrees(la2),
        longitude=_normalize_lon(math.degrees(lo2)),
        is_anonymous=start.is_anonymous,
    )


def midpoint(a: GeoPoint, b: GeoPoint) -> GeoPoint:
    """Great-circle midpoint. Coincident points return *a*."""
    if a.same_position(b):
        return a
    la1, la2 = math.radians(a.latitude), math.radians(b.latitude)
    dlon = math.radians(b.longitude - a.longitude)
    bx = math.cos(la2) * math.cos(dlon)
    by = math.cos(la2) * math.sin(dlon)
    la3 = math.atan2(
        math.sin(la1) + math.sin(la2),
        math.sqrt((math.cos(la1) + bx) ** 2 + by ** 2),
    )
    lo3 = math.radians(a.longitude) + math.atan2(by, math.cos(la1) + bx)
    return GeoPoint(
        latitude=math.degrees(la3),
        longitude=_normalize_lon(math.degrees(lo3)),
        is_anonymous=a.is_anonymous or b.is_anonymous,
    )


def is_too_boring(distance: float) -> bool:
    """Distances under 500 km are not worth a random flight."""
    return distance < TOO_BORING_DISTANCE_KM


def distance_category(distance: float) -> DistanceCategory:
    if distance < 100:
        return DistanceCategory.LOCAL
    if distance < 500:
        return DistanceCategory.REGIONAL
    if distance < 2000:
        return DistanceCategory.NATIONAL
    if distance < 8000:
        return DistanceCategory.CONTINENTAL
    return DistanceCategory.INTERCONTINENTAL


def distance_weight(distance: float) -> float:
    return DISTANCE_WEIGHTS[distance_category(distance)]


def format_distance(distance: float) -> str:
    if distance < 1:
        return f"{round(distance * 1000)}m"
    if distance < 10:
        return f"{distance:.1f}km"
    return f"{round(distance)}km"
