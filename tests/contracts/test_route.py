"""Tests for GeoPoint, Waypoint and Route contracts."""

from datetime import datetime, timedelta, timezone

import pytest

from courier.contracts.common import GeoPoint
from courier.contracts.enums import TerrainKind
from courier.contracts.route import Route, Waypoint

T0 = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _wp(i: int, lat: float, lon: float, at: datetime) -> Waypoint:
    return Waypoint(
        id=f"wp_{i}",
        location=GeoPoint(latitude=lat, longitude=lon),
        terrain=TerrainKind.LAND,
        altitude_m=600,
        timestamp=at,
    )


class TestGeoPoint:
    def test_valid_point(self):
        p = GeoPoint(latitude=48.85, longitude=2.35, country="FR")
        assert p.country == "FR"
        assert p.is_anonymous is False

    @pytest.mark.parametrize("lat,lon", [(91, 0), (-91, 0), (0, 181), (0, -181)])
    def test_out_of_range_rejected(self, lat, lon):
        with pytest.raises(Exception):
            GeoPoint(latitude=lat, longitude=lon)

    @pytest.mark.parametrize("value", [float("nan"), float("inf")])
    def test_non_finite_rejected(self, value):
        with pytest.raises(Exception):
            GeoPoint(latitude=value, longitude=0)

    def test_frozen(self):
        p = GeoPoint(latitude=1, longitude=2)
        with pytest.raises(Exception):
            p.latitude = 3

    def test_anonymized_rounds_to_two_decimals(self):
        p = GeoPoint(latitude=51.507412, longitude=-0.127758).anonymized()
        assert p.latitude == 51.51
        assert p.longitude == -0.13
        assert p.is_anonymous is True

    def test_round_trip_firestore(self):
        p = GeoPoint(latitude=1.5, longitude=2.5, state="NY")
        data = p.to_firestore()
        assert "country" not in data
        assert GeoPoint.from_firestore(data) == p


class TestRoute:
    def test_valid_route(self):
        route = Route(
            path=[_wp(0, 0, 0, T0), _wp(1, 0, 1, T0 + timedelta(hours=2))],
            total_distance_km=111.2,
            total_cost=111.2,
        )
        assert route.start.longitude == 0
        assert route.end.longitude == 1

    def test_single_waypoint_rejected(self):
        with pytest.raises(Exception):
            Route(path=[_wp(0, 0, 0, T0)], total_distance_km=0, total_cost=0)

    def test_decreasing_timestamps_rejected(self):
        with pytest.raises(Exception, match="precedes"):
            Route(
                path=[_wp(0, 0, 0, T0), _wp(1, 0, 1, T0 - timedelta(seconds=1))],
                total_distance_km=111.2,
                total_cost=111.2,
            )

    def test_equal_timestamps_allowed(self):
        route = Route(path=[_wp(0, 0, 0, T0), _wp(1, 0, 0, T0)], total_distance_km=0, total_cost=0)
        assert len(route.path) == 2

    def test_waypoint_altitude_must_be_positive(self):
        with pytest.raises(Exception):
            Waypoint(
                id="wp_0",
                location=GeoPoint(latitude=0, longitude=0),
                terrain=TerrainKind.OCEAN,
                altitude_m=0,
                timestamp=T0,
            )

    def test_terrain_stored_as_string(self):
        data = _wp(0, 0, 0, T0).to_firestore()
        assert data["terrain"] == "land"
