"""Flight progress engine: advances every active flight over wall-clock time.

Each flight owns one ``asyncio.Task`` that sleeps ``tick_interval_s`` and
then calls :meth:`FlightEngine.tick`. A tick runs under the flight's own
lock, so ticks of one flight never interleave while different flights run
independently. Tests drive :meth:`tick` directly with an injected clock.

Lifecycle: ``initializing -> flying -> delivered | cancelled``.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

from courier.config import FlightEngineConfig
from courier.contracts.common import GeoPoint
from courier.contracts.enums import FlightStatus, WeatherKind
from courier.contracts.flight import FlightProgress, JourneyData
from courier.contracts.route import Route
from courier.contracts.weather import WeatherSample
from courier.services.geometry import bearing_deg
from courier.services.routing import RoutingEngine, interpolate_position
from courier.services.weather.provider import WeatherProvider

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[FlightProgress], None]
CompletionHandler = Callable[[str, FlightProgress], Awaitable[object]]

# Remaining distance under which a flight counts as arrived
ARRIVAL_TOLERANCE_KM = 0.1


@dataclass
class FlightState:
    """Mutable per-flight state, owned by the engine."""

    message_id: str
    route: Route
    start_location: GeoPoint
    end_location: GeoPoint
    current_position: GeoPoint
    base_speed_kmh: float
    started_at: datetime
    estimated_arrival: datetime
    total_distance_km: float
    status: FlightStatus = FlightStatus.INITIALIZING
    progress_pct: float = 0.0
    current_weather: WeatherSample | None = None
    current_speed_kmh: float = 0.0
    distance_covered_km: float = 0.0
    weather_events: list[WeatherSample] = field(default_factory=list)
    tick_count: int = 0
    last_update: datetime | None = None
    # Distance already covered when the current route was planned
    route_offset_km: float = 0.0
    estimated_duration_s: float = 0.0


@dataclass
class _CompletedFlight:
    progress: FlightProgress
    journey: JourneyData


class FlightEngine:
    def __init__(
        self,
        routing: RoutingEngine,
        weather: WeatherProvider,
        config: FlightEngineConfig | None = None,
        clock: Callable[[], datetime] | None = None,
        completion_handler: CompletionHandler | None = None,
        auto_start: bool = True,
    ):
        self._routing = routing
        self._weather = weather
        self._config = config or FlightEngineConfig()
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))
        self._completion_handler = completion_handler
        self._auto_start = auto_start

        self._flights: dict[str, FlightState] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._timers: dict[str, asyncio.Task] = {}
        self._callbacks: dict[str, list[ProgressCallback]] = {}
        self._completed: OrderedDict[str, _CompletedFlight] = OrderedDict()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize_flight(
        self, message_id: str, start: GeoPoint, end: GeoPoint
    ) -> FlightState | None:
        """Plan and launch a flight. ``None`` if routing fails or it is already flying."""
        if message_id in self._flights:
            logger.warning("Flight %s is already active", message_id)
            return None

        route = self._routing.calculate_route(start, end)
        if route is None:
            logger.warning("Failed to initialize flight %s: no route", message_id)
            return None

        now = self._clock()
        state = FlightState(
            message_id=message_id,
            route=route,
            start_location=start,
            end_location=end,
            current_position=start,
            base_speed_kmh=self._config.base_speed_kmh,
            started_at=now,
            estimated_arrival=now,
            total_distance_km=route.total_distance_km,
        )
        self._flights[message_id] = state
        self._locks[message_id] = asyncio.Lock()
        self._completed.pop(message_id, None)

        samples = await self._weather.fetch_weather_for_route(route)
        if not self._is_current(state):
            # Cancelled while weather was loading
            return None

        state.current_weather = samples[0] if samples else None
        state.weather_events.extend(s for s in samples if s.kind != WeatherKind.CLEAR)
        state.current_speed_kmh = self._speed(state)
        state.estimated_duration_s = route.total_distance_km / state.current_speed_kmh * 3600
        state.estimated_arrival = now + timedelta(seconds=state.estimated_duration_s)
        state.last_update = self._clock()
        state.status = FlightStatus.FLYING

        if self._auto_start:
            self._timers[message_id] = asyncio.create_task(
                self._run(message_id), name=f"flight-{message_id}"
            )
        logger.info(
            "Flight %s launched: %.0f km, %d waypoints, ETA %s",
            message_id, route.total_distance_km, len(route.path), state.estimated_arrival.isoformat(),
        )
        return state

    async def _run(self, message_id: str) -> None:
        try:
            while message_id in self._flights:
                await asyncio.sleep(self._config.tick_interval_s)
                try:
                    await self.tick(message_id)
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception("Tick failed for flight %s, will retry next interval", message_id)
        finally:
            if self._timers.get(message_id) is asyncio.current_task():
                del self._timers[message_id]

    def cancel_flight(self, message_id: str) -> bool:
        """Stop a flight immediately. ``False`` if it was not active."""
        state = self._flights.pop(message_id, None)
        if state is None:
            return False
        state.status = FlightStatus.CANCELLED
        self._locks.pop(message_id, None)
        self._callbacks.pop(message_id, None)
        task = self._timers.pop(message_id, None)
        if task is not None and task is not asyncio.current_task():
            task.cancel()
        logger.info("Flight %s cancelled at %.1f%%", message_id, state.progress_pct)
        return True

    async def shutdown(self) -> None:
        """Cancel every timer and forget all active flights."""
        tasks = list(self._timers.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        for state in self._flights.values():
            state.status = FlightStatus.CANCELLED
        self._flights.clear()
        self._locks.clear()
        self._timers.clear()
        self._callbacks.clear()
        logger.info("Flight engine stopped (%d timers cancelled)", len(tasks))

    # ------------------------------------------------------------------
    # Ticking
    # ------------------------------------------------------------------

    def _is_current(self, state: FlightState) -> bool:
        return self._flights.get(state.message_id) is state

    def _is_flying(self, state: FlightState) -> bool:
        return self._is_current(state) and state.status == FlightStatus.FLYING

    def _speed(self, state: FlightState) -> float:
        heading = bearing_deg(state.current_position, state.end_location)
        return self._weather.calculate_flight_speed(
            state.base_speed_kmh, state.current_weather, heading_deg=heading
        )

    async def tick(self, message_id: str) -> FlightProgress | None:
        """Advance one flight by the time elapsed since its last tick.

        Returns the new snapshot, or ``None`` when the flight is not flying.
        """
        lock = self._locks.get(message_id)
        if lock is None:
            return None

        async with lock:
            state = self._flights.get(message_id)
            if state is None or state.status != FlightStatus.FLYING:
                return None
            snapshot, arrived = await self._advance(state)

        if arrived:
            await self._complete(message_id, snapshot)
        return snapshot

    async def _advance(self, state: FlightState) -> tuple[FlightProgress | None, bool]:
        now = self._clock()
        elapsed_h = max(0.0, (now - state.last_update).total_seconds()) / 3600
        state.last_update = now
        state.tick_count += 1

        if state.tick_count % self._config.weather_check_every_ticks == 0:
            await self._check_weather(state)
            if not self._is_flying(state):
                return None, False

        state.current_speed_kmh = self._speed(state)
        previous_covered = state.distance_covered_km
        state.distance_covered_km = min(
            state.total_distance_km,
            state.distance_covered_km + state.current_speed_kmh * elapsed_h,
        )
        remaining = state.total_distance_km - state.distance_covered_km

        if remaining < ARRIVAL_TOLERANCE_KM:
            state.distance_covered_km = state.total_distance_km
            state.progress_pct = 100.0
            state.current_position = state.end_location
            state.estimated_arrival = now
            state.status = FlightStatus.DELIVERED
            snapshot = self._snapshot(state)
            self._notify(state.message_id, snapshot)
            return snapshot, True

        state.progress_pct = max(
            state.progress_pct,
            state.distance_covered_km / state.total_distance_km * 100,
        )
        state.current_position = interpolate_position(
            state.route, state.distance_covered_km - state.route_offset_km
        )
        state.estimated_arrival = now + timedelta(hours=remaining / state.current_speed_kmh)

        snapshot = self._snapshot(state)
        if state.distance_covered_km != previous_covered:
            self._notify(state.message_id, snapshot)
        logger.debug(
            "Flight %s at %.2f%% (%.1f/%.1f km, %.1f km/h)",
            state.message_id, state.progress_pct, state.distance_covered_km,
            state.total_distance_km, state.current_speed_kmh,
        )
        return snapshot, False

    async def _check_weather(self, state: FlightState) -> None:
        """Re-sample weather where the flight is; reroute on newly severe weather."""
        sample = await self._weather.fetch_weather(state.current_position)
        if not self._is_flying(state):
            return

        previous = state.current_weather
        state.current_weather = sample
        if sample.kind != WeatherKind.CLEAR:
            state.weather_events.append(sample)

        if not self._weather.should_recalculate_route(sample):
            return
        if self._weather.should_recalculate_route(previous):
            # Already flying around this storm
            return

        new_route = self._routing.recalculate_route(
            state.current_position, state.end_location, avoid=[sample.location]
        )
        if new_route is None:
            logger.warning("Reroute of flight %s failed, keeping current route", state.message_id)
            return

        state.route = new_route
        state.route_offset_km = state.distance_covered_km
        state.total_distance_km = state.distance_covered_km + new_route.total_distance_km
        logger.info(
            "Flight %s rerouted around a storm, %.0f km remaining",
            state.message_id, new_route.total_distance_km,
        )

    async def _complete(self, message_id: str, snapshot: FlightProgress) -> None:
        state = self._flights.pop(message_id, None)
        if state is None:
            return
        self._locks.pop(message_id, None)
        self._callbacks.pop(message_id, None)
        self._remember(message_id, snapshot, self._journey(state))
        logger.info(
            "Flight %s arrived after %.0f km (%d weather events)",
            message_id, state.total_distance_km, len(state.weather_events),
        )

        if self._completion_handler is None:
            return
        try:
            await self._completion_handler(message_id, snapshot)
        except Exception:
            logger.exception("Completion handler failed for flight %s", message_id)

    def _remember(self, message_id: str, snapshot: FlightProgress, journey: JourneyData) -> None:
        self._completed[message_id] = _CompletedFlight(progress=snapshot, journey=journey)
        self._completed.move_to_end(message_id)
        while len(self._completed) > self._config.completed_retention:
            self._completed.popitem(last=False)

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    def on_flight_progress(self, message_id: str, callback: ProgressCallback) -> None:
        self._callbacks.setdefault(message_id, []).append(callback)

    def remove_flight_callback(self, message_id: str, callback: ProgressCallback | None = None) -> bool:
        """Remove one callback, or all of them when *callback* is omitted."""
        callbacks = self._callbacks.get(message_id)
        if not callbacks:
            return False
        if callback is None:
            del self._callbacks[message_id]
            return True
        try:
            callbacks.remove(callback)
        except ValueError:
            return False
        if not callbacks:
            del self._callbacks[message_id]
        return True

    def _notify(self, message_id: str, snapshot: FlightProgress) -> None:
        for callback in list(self._callbacks.get(message_id, [])):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Progress callback failed for flight %s", message_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _snapshot(self, state: FlightState) -> FlightProgress:
        return FlightProgress(
            message_id=state.message_id,
            current_position=state.current_position,
            progress_pct=state.progress_pct,
            estimated_arrival=state.estimated_arrival,
            current_weather=state.current_weather,
            speed_kmh=state.current_speed_kmh,
            total_distance_km=state.total_distance_km,
            distance_covered_km=state.distance_covered_km,
            weather_events=list(state.weather_events),
        )

    def _journey(self, state: FlightState) -> JourneyData:
        delivered = state.status == FlightStatus.DELIVERED
        return JourneyData(
            route=list(state.route.path),
            total_distance_km=state.total_distance_km,
            estimated_duration_s=state.estimated_duration_s,
            estimated_arrival=state.estimated_arrival,
            weather_events=list(state.weather_events),
            current_progress=state.progress_pct,
            final_position=state.current_position if delivered else None,
            delivered_at=state.estimated_arrival if delivered else None,
        )

    def get_flight_progress(self, message_id: str) -> FlightProgress | None:
        """Live snapshot, or the final one for a recently completed flight."""
        state = self._flights.get(message_id)
        if state is not None:
            return self._snapshot(state)
        completed = self._completed.get(message_id)
        return completed.progress if completed else None

    def get_journey_data(self, message_id: str) -> JourneyData | None:
        state = self._flights.get(message_id)
        if state is not None:
            return self._journey(state)
        completed = self._completed.get(message_id)
        return completed.journey if completed else None

    def get_active_flights(self) -> list[FlightProgress]:
        return [
            self._snapshot(state)
            for state in self._flights.values()
            if state.status == FlightStatus.FLYING
        ]

    def get_flight_state(self, message_id: str) -> FlightState | None:
        return self._flights.get(message_id)
