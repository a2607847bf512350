"""Operator CLI for the simulation engine.

Usage:
    python -m courier.cli route --from 51.5074,-0.1278 --to 40.7128,-74.0060
    python -m courier.cli simulate --from 48.85,2.35 --to 35.68,139.69 --speed-up 3600
    python -m courier.cli sweep
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import datetime, timezone

from dotenv import load_dotenv

from courier.config import Settings
from courier.contracts.common import GeoPoint
from courier.contracts.flight import FlightProgress
from courier.services.flight_engine import FlightEngine
from courier.services.geometry import format_distance
from courier.services.routing import RoutingEngine, route_terrain_summary
from courier.services.weather.conditions import describe_weather
from courier.services.weather.provider import WeatherProvider

logger = logging.getLogger(__name__)


def _point(value: str) -> GeoPoint:
    try:
        lat, lon = (float(part) for part in value.split(","))
        return GeoPoint(latitude=lat, longitude=lon)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected LAT,LON, got {value!r}") from exc


def _accelerated_clock(factor: float):
    """Wall clock running *factor* times faster from now on."""
    origin = datetime.now(tz=timezone.utc)

    def clock() -> datetime:
        return origin + (datetime.now(tz=timezone.utc) - origin) * factor

    return clock


def cmd_route(args: argparse.Namespace, settings: Settings) -> int:
    route = RoutingEngine(settings.routing).calculate_route(args.start, args.end)
    if route is None:
        logger.error("No route between %s and %s", args.start, args.end)
        return 1
    print(f"{format_distance(route.total_distance_km)} over {len(route.path)} waypoints, cost {route.total_cost:.1f}")
    for wp in route.path:
        print(f"  {wp.id:>6}  {wp.location.latitude:8.3f} {wp.location.longitude:9.3f}  {wp.terrain:<8} {wp.timestamp:%Y-%m-%d %H:%M}")
    for terrain, km in route_terrain_summary(route).items():
        if km:
            print(f"  {terrain}: {format_distance(km)}")
    return 0


async def _simulate(args: argparse.Namespace, settings: Settings) -> int:
    clock = _accelerated_clock(args.speed_up)
    weather = WeatherProvider(config=settings.weather, clock=clock)
    done = asyncio.Event()

    async def on_complete(message_id: str, progress: FlightProgress) -> None:
        print(f"Delivered {message_id} at {progress.estimated_arrival:%Y-%m-%d %H:%M} (simulated)")
        done.set()

    engine = FlightEngine(
        RoutingEngine(settings.routing, clock=clock),
        weather,
        settings.flight,
        clock=clock,
        completion_handler=on_complete,
    )
    last_printed = -args.every

    def on_progress(progress: FlightProgress) -> None:
        nonlocal last_printed
        if progress.progress_pct - last_printed < args.every and not progress.is_complete:
            return
        last_printed = progress.progress_pct
        conditions = describe_weather(progress.current_weather) if progress.current_weather else "unknown"
        print(
            f"{progress.progress_pct:6.2f}%  {progress.current_position.latitude:8.3f} "
            f"{progress.current_position.longitude:9.3f}  {progress.speed_kmh or 0:5.1f} km/h  {conditions}"
        )

    engine.on_flight_progress("simulation", on_progress)
    try:
        if await engine.initialize_flight("simulation", args.start, args.end) is None:
            logger.error("Could not start the flight")
            return 1
        await done.wait()
    finally:
        await engine.shutdown()
        await weather.aclose()
    return 0


async def _sweep(settings: Settings) -> int:
    from courier.app import CourierApp

    app = CourierApp.create(settings=settings)
    try:
        delivered = await app.recover()
        pending = app.delivery.get_pending_deliveries()
        await app.delivery.wait_for_retries()
    finally:
        await app.aclose()
    print(f"Delivered {delivered} message(s), {len(pending)} retried")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Tailwind Courier simulation engine")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    route = sub.add_parser("route", help="Compute and print a route")
    route.add_argument("--from", dest="start", type=_point, required=True, help="LAT,LON")
    route.add_argument("--to", dest="end", type=_point, required=True, help="LAT,LON")

    simulate = sub.add_parser("simulate", help="Fly one duck locally, without storage")
    simulate.add_argument("--from", dest="start", type=_point, required=True, help="LAT,LON")
    simulate.add_argument("--to", dest="end", type=_point, required=True, help="LAT,LON")
    simulate.add_argument("--speed-up", type=float, default=3600.0, help="Simulated seconds per real second")
    simulate.add_argument("--every", type=float, default=5.0, help="Print every N percent")

    sub.add_parser("sweep", help="Deliver flying messages whose flights are over")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Exports .env to os.environ for the Firestore client
    load_dotenv()
    settings = Settings()

    if args.command == "route":
        return cmd_route(args, settings)
    if args.command == "simulate":
        return asyncio.run(_simulate(args, settings))
    return asyncio.run(_sweep(settings))


if __name__ == "__main__":
    raise SystemExit(main())
