"""Journey points and courier ranks.

Points for a delivered message:

- 1 point per km flown (``points_per_km``)
- +25% of that when the flight met adverse weather
- +5000 flat for journeys of 10 000 km or more
- +500 for each country / state the recipient has not heard from before
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable

from courier.config import RANKS, RewardConfig
from courier.contracts.common import GeoPoint
from courier.contracts.user import RankAdvancement, RankDefinition, User
from courier.contracts.weather import WeatherSample


@dataclass
class PointsBreakdown:
    base_points: int
    weather_bonus: int
    distance_bonus: int
    location_bonus: int
    new_countries: list[str] = field(default_factory=list)
    new_states: list[str] = field(default_factory=list)
    lines: list[str] = field(default_factory=list)

    @property
    def total_points(self) -> int:
        return self.base_points + self.weather_bonus + self.distance_bonus + self.location_bonus


class RankingService:
    def __init__(
        self,
        config: RewardConfig | None = None,
        ranks: list[RankDefinition] | None = None,
    ):
        self._config = config or RewardConfig()
        self._ranks = sorted(ranks or RANKS, key=lambda r: r.min_points)

    def calculate_journey_points(
        self,
        distance_km: float,
        weather_events: Iterable[WeatherSample],
        origin: GeoPoint | None,
        recipient: User,
    ) -> PointsBreakdown:
        """Points *recipient* earns for a flight of *distance_km* from *origin*."""
        cfg = self._config
        base = math.floor(distance_km * cfg.points_per_km)
        lines = [f"Base: {base} points ({distance_km:.0f}km x {cfg.points_per_km:g})"]

        adverse = [event for event in weather_events if event.is_adverse]
        weather_bonus = 0
        if adverse:
            weather_bonus = math.floor(base * cfg.weather_bonus_multiplier)
            lines.append(f"Weather bonus: {weather_bonus} points ({len(adverse)} adverse conditions)")

        distance_bonus = 0
        if distance_km >= cfg.long_distance_threshold_km:
            distance_bonus = cfg.long_distance_bonus
            lines.append(f"Long distance bonus: {distance_bonus} points")

        new_countries: list[str] = []
        new_states: list[str] = []
        if origin is not None:
            if origin.country and origin.country not in recipient.countries_visited:
                new_countries.append(origin.country)
            if origin.state and origin.state not in recipient.states_visited:
                new_states.append(origin.state)
        location_bonus = (len(new_countries) + len(new_states)) * cfg.new_location_bonus
        if location_bonus:
            lines.append(
                f"New location bonus: {location_bonus} points "
                f"({', '.join(new_countries + new_states)})"
            )

        return PointsBreakdown(
            base_points=base,
            weather_bonus=weather_bonus,
            distance_bonus=distance_bonus,
            location_bonus=location_bonus,
            new_countries=new_countries,
            new_states=new_states,
            lines=lines,
        )

    def rank_for_points(self, points: int) -> RankDefinition:
        current = self._ranks[0]
        for rank in self._ranks:
            if points >= rank.min_points:
                current = rank
        return current

    def next_rank(self, points: int) -> RankDefinition | None:
        for rank in self._ranks:
            if rank.min_points > points:
                return rank
        return None

    def progress_to_next_rank(self, points: int) -> float:
        """Percent of the way from the current rank's threshold to the next one."""
        current, upcoming = self.rank_for_points(points), self.next_rank(points)
        if upcoming is None:
            return 100.0
        span = upcoming.min_points - current.min_points
        return min(100.0, (points - current.min_points) / span * 100)

    def apply_delivery(
        self,
        recipient: User,
        points: PointsBreakdown,
        distance_km: float,
    ) -> tuple[User, RankAdvancement | None]:
        """Recipient with this delivery folded into their statistics.

        Returns the updated copy and, when the rank changed, the advancement
        with the rewards of every rank crossed on the way.
        """
        total = recipient.total_journey_points + points.total_points
        new_rank = self.rank_for_points(total)

        crossed = [
            rank for rank in self._ranks
            if recipient.total_journey_points < rank.min_points <= total
        ]
        rewards = [reward for rank in crossed for reward in rank.rewards]

        updated = recipient.model_copy(update={
            "total_flights_received": recipient.total_flights_received + 1,
            "total_distance_traveled_km": recipient.total_distance_traveled_km + distance_km,
            "total_journey_points": total,
            "current_rank": new_rank.name,
            "countries_visited": recipient.countries_visited + points.new_countries,
            "states_visited": recipient.states_visited + points.new_states,
            "achievements": recipient.achievements + [r for r in rewards if r not in recipient.achievements],
        })

        if new_rank.name == recipient.current_rank:
            return updated, None
        return updated, RankAdvancement(
            previous_rank=recipient.current_rank,
            new_rank=new_rank.name,
            points_earned=points.total_points,
            total_points=total,
            rewards_unlocked=rewards,
        )
