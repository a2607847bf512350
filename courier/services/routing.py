"""Terrain-aware routing: great-circle sampling + Dijkstra over terrain cost.

The search graph is coarse: nodes are points sampled along the
great circle at most ``max_segment_km`` apart, each classified by terrain.
Edge cost is distance divided by how easy the terrain is to fly over, so the
path Dijkstra returns minimises effort, not kilometres. Routes that must avoid
some areas are searched over a wider lattice with lateral offsets instead.
"""

from __future__ import annotations

import heapq
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable

from courier.config import RoutingConfig
from courier.contracts.common import GeoPoint
from courier.contracts.enums import TerrainKind
from courier.contracts.route import Route, Waypoint
from courier.services.errors import InvalidLocationError
from courier.services.geometry import bearing_deg, destination, distance_km
from courier.services.terrain import classify_terrain, terrain_altitude, terrain_modifier

logger = logging.getLogger(__name__)

# Start and end closer than this are treated as the same place
DEGENERATE_DISTANCE_KM = 0.1

# Detour nodes and edges stay at least this far from an avoid point
AVOID_RADIUS_KM = 100.0

# Lateral offsets per side in the detour lattice
DETOUR_LEVELS = 2

# Fractions along an edge checked against avoid points
_EDGE_SAMPLES = (0.25, 0.5, 0.75)


@dataclass
class _Node:
    index: int
    id: str
    location: GeoPoint
    terrain: TerrainKind
    altitude_m: float


@dataclass
class _Edge:
    to: int
    distance_km: float
    cost: float


@dataclass
class _Graph:
    nodes: list[_Node]
    edges: dict[int, list[_Edge]] = field(default_factory=dict)


def _validate(point: GeoPoint | None, name: str) -> None:
    """Raise InvalidLocationError unless *point* is a finite, in-range coordinate."""
    if point is None:
        raise InvalidLocationError(f"{name} is missing")
    lat, lon = point.latitude, point.longitude
    if not (isinstance(lat, (int, float)) and isinstance(lon, (int, float))):
        raise InvalidLocationError(f"{name} is not numeric")
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise InvalidLocationError(f"{name} is not finite")
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        raise InvalidLocationError(f"{name} is out of range")


def _segment_clear(a: GeoPoint, b: GeoPoint, length: float, avoid: list[GeoPoint]) -> bool:
    if not avoid:
        return True
    bearing = bearing_deg(a, b)
    for fraction in _EDGE_SAMPLES:
        point = destination(a, length * fraction, bearing)
        if any(distance_km(point, x) < AVOID_RADIUS_KM for x in avoid):
            return False
    return True


def _altitude_modifier(from_alt: float, to_alt: float) -> float:
    """Penalty for large altitude changes between two nodes."""
    change = abs(to_alt - from_alt)
    if change > 2000:
        return 0.8
    if change > 1000:
        return 0.9
    return 1.0


def edge_cost(distance: float, from_terrain: TerrainKind, to_terrain: TerrainKind,
              from_alt: float, to_alt: float) -> float:
    """Distance scaled by the mean terrain modifier and altitude change."""
    terrain = (terrain_modifier(from_terrain) + terrain_modifier(to_terrain)) / 2
    return distance / (terrain * _altitude_modifier(from_alt, to_alt))


class RoutingEngine:
    """Computes deterministic terrain-weighted routes between two points."""

    def __init__(
        self,
        config: RoutingConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._config = config or RoutingConfig()
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))

    @property
    def max_segment_km(self) -> float:
        return self._config.max_segment_km

    # ------------------------------------------------------------------
    # Waypoint generation
    # ------------------------------------------------------------------

    def generate_waypoints(
        self,
        start: GeoPoint,
        end: GeoPoint,
        max_segment_km: float | None = None,
        departure: datetime | None = None,
    ) -> list[Waypoint]:
        """Sample the great circle from *start* to *end*.

        Always returns at least two waypoints, never more than
        ``max_segment_km`` apart, timestamped at the cruise speed from
        *departure* onwards. Raises InvalidLocationError for bad coordinates.
        """
        _validate(start, "start")
        _validate(end, "end")
        max_seg = max_segment_km or self._config.max_segment_km
        total = distance_km(start, end)

        points = [start]
        if total >= DEGENERATE_DISTANCE_KM:
            # Shrink the divisor a hair so float error cannot push a
            # segment past the limit
            segments = max(1, math.ceil(total / (max_seg * (1 - 1e-9))))
            step = total / segments
            bearing = bearing_deg(start, end)
            points.extend(destination(start, i * step, bearing) for i in range(1, segments))
        points.append(end)

        return self._timestamped(points, departure or self._clock())

    def _timestamped(self, points: list[GeoPoint], departure: datetime) -> list[Waypoint]:
        waypoints: list[Waypoint] = []
        elapsed_km = 0.0
        for i, point in enumerate(points):
            if i > 0:
                elapsed_km += distance_km(points[i - 1], point)
            terrain = classify_terrain(point)
            waypoints.append(Waypoint(
                id=f"wp_{i}",
                location=point,
                terrain=terrain,
                altitude_m=terrain_altitude(terrain),
                timestamp=departure + timedelta(hours=elapsed_km / self._config.cruise_speed_kmh),
            ))
        return waypoints

    # ------------------------------------------------------------------
    # Graph + search
    # ------------------------------------------------------------------

    @staticmethod
    def _node(index: int, node_id: str, location: GeoPoint) -> _Node:
        terrain = classify_terrain(location)
        return _Node(
            index=index,
            id=node_id,
            location=location,
            terrain=terrain,
            altitude_m=terrain_altitude(terrain),
        )

    def _build_graph(self, waypoints: list[Waypoint]) -> _Graph:
        """Chain graph over the great-circle waypoints."""
        nodes = [
            _Node(
                index=i,
                id=wp.id,
                location=wp.location,
                terrain=TerrainKind(wp.terrain),
                altitude_m=wp.altitude_m,
            )
            for i, wp in enumerate(waypoints)
        ]
        graph = _Graph(nodes=nodes, edges={n.index: [] for n in nodes})
        for current, nxt in zip(nodes, nodes[1:]):
            self._add_edge(graph, current, nxt)
        return graph

    def _build_detour_graph(self, start: GeoPoint, end: GeoPoint, avoid: list[GeoPoint]) -> _Graph:
        """Lattice of great-circle layers with lateral offsets on both sides.

        Layers are half a segment apart. Each one carries the on-track point
        plus ``DETOUR_LEVELS`` offsets to the left and right. Nodes inside an
        avoid radius are left out. Edges join every pair of nodes in
        neighbouring layers that is no longer than ``max_segment_km`` and
        clear of every avoid radius along its length.
        """
        max_seg = self._config.max_segment_km
        total = distance_km(start, end)
        half = max_seg / 2
        layers_count = max(1, math.ceil(total / (half * (1 - 1e-9))))
        step = total / layers_count
        lateral = min(half, AVOID_RADIUS_KM)
        bearing = bearing_deg(start, end)

        nodes: list[_Node] = [self._node(0, "n_0_0", start)]
        layers: list[dict[int, _Node]] = [{0: nodes[0]}]
        for i in range(1, layers_count):
            centre = destination(start, i * step, bearing)
            heading = bearing_deg(centre, end)
            layer: dict[int, _Node] = {}
            for level in range(-DETOUR_LEVELS, DETOUR_LEVELS + 1):
                if level == 0:
                    point = centre
                else:
                    side = heading + (90.0 if level > 0 else -90.0)
                    point = destination(centre, abs(level) * lateral, side)
                if any(distance_km(point, a) < AVOID_RADIUS_KM for a in avoid):
                    continue
                node = self._node(len(nodes), f"n_{i}_{level}", point)
                nodes.append(node)
                layer[level] = node
            layers.append(layer)
        end_node = self._node(len(nodes), f"n_{layers_count}_0", end)
        nodes.append(end_node)
        layers.append({0: end_node})

        graph = _Graph(nodes=nodes, edges={n.index: [] for n in nodes})
        for layer, nxt in zip(layers, layers[1:]):
            for src in layer.values():
                for dst in nxt.values():
                    d = distance_km(src.location, dst.location)
                    if d > max_seg or not _segment_clear(src.location, dst.location, d, avoid):
                        continue
                    self._add_edge(graph, src, dst)
        return graph

    @staticmethod
    def _add_edge(graph: _Graph, src: _Node, dst: _Node) -> float:
        d = distance_km(src.location, dst.location)
        cost = edge_cost(d, src.terrain, dst.terrain, src.altitude_m, dst.altitude_m)
        graph.edges[src.index].append(_Edge(to=dst.index, distance_km=d, cost=cost))
        return d

    @staticmethod
    def _shortest_path(graph: _Graph, source: int, target: int) -> tuple[list[int], float] | None:
        """Dijkstra. Ties break on node index; equal cost keeps the first path found."""
        best = [math.inf] * len(graph.nodes)
        previous: list[int | None] = [None] * len(graph.nodes)
        best[source] = 0.0
        heap: list[tuple[float, int]] = [(0.0, source)]
        settled: set[int] = set()

        while heap:
            cost, index = heapq.heappop(heap)
            if index in settled:
                continue
            settled.add(index)
            if index == target:
                break
            for edge in graph.edges[index]:
                if edge.to in settled:
                    continue
                candidate = cost + edge.cost
                if candidate < best[edge.to]:
                    best[edge.to] = candidate
                    previous[edge.to] = index
                    heapq.heappush(heap, (candidate, edge.to))

        if math.isinf(best[target]):
            return None

        path = [target]
        while path[-1] != source:
            prev = previous[path[-1]]
            if prev is None:
                return None
            path.append(prev)
        path.reverse()
        return path, best[target]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def calculate_route(
        self,
        start: GeoPoint,
        end: GeoPoint,
        avoid: Iterable[GeoPoint] | None = None,
    ) -> Route | None:
        """Optimal route from *start* to *end*.

        With *avoid*, the search runs over a detour lattice instead of the
        great-circle chain. ``None`` for invalid input, or when no detour
        clears every avoid area.
        """
        departure = self._clock()
        try:
            waypoints = self.generate_waypoints(start, end, departure=departure)
        except InvalidLocationError as exc:
            logger.warning("Refusing to route %s -> %s: %s", start, end, exc.reason)
            return None

        # Areas around either endpoint cannot be flown around
        avoid = [
            a for a in avoid or []
            if distance_km(a, start) >= AVOID_RADIUS_KM and distance_km(a, end) >= AVOID_RADIUS_KM
        ]
        if avoid:
            graph = self._build_detour_graph(start, end, avoid)
        else:
            graph = self._build_graph(waypoints)

        found = self._shortest_path(graph, 0, len(graph.nodes) - 1)
        if found is None:
            logger.warning("No route from %s to %s clear of %d avoid areas", start, end, len(avoid))
            return None
        indices, total_cost = found

        chosen = [graph.nodes[i].location for i in indices]
        path = self._timestamped(chosen, departure)
        total_distance = sum(
            distance_km(a.location, b.location) for a, b in zip(path, path[1:])
        )
        return Route(path=path, total_distance_km=total_distance, total_cost=total_cost)

    def recalculate_route(
        self,
        current_position: GeoPoint,
        destination_point: GeoPoint,
        avoid: Iterable[GeoPoint] | None = None,
    ) -> Route | None:
        """Re-plan from the current position, e.g. after severe weather."""
        return self.calculate_route(current_position, destination_point, avoid=avoid)


def interpolate_position(route: Route, distance_along_km: float) -> GeoPoint:
    """Point *distance_along_km* into *route*, following its segments."""
    if distance_along_km <= 0:
        return route.start
    travelled = 0.0
    for a, b in zip(route.path, route.path[1:]):
        segment = distance_km(a.location, b.location)
        if distance_along_km <= travelled + segment:
            into = distance_along_km - travelled
            if segment <= 0:
                return b.location
            return destination(a.location, into, bearing_deg(a.location, b.location))
        travelled += segment
    return route.end


def route_terrain_summary(route: Route) -> dict[str, float]:
    """Kilometres flown over each terrain, attributing a segment to its start."""
    summary = {kind.value: 0.0 for kind in TerrainKind}
    for a, b in zip(route.path, route.path[1:]):
        summary[TerrainKind(a.terrain).value] += distance_km(a.location, b.location)
    return summary
