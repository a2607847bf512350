"""Tailwind recipient matching.

Picks a random recipient for an undirected message, biased toward users far
away from the sender. Eligibility rules are applied in a fixed order so the
statistics and validation helpers can report which rule excluded a user.
"""

from __future__ import annotations

import logging
import random
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable

from courier.config import MatchingConfig
from courier.contracts.common import GeoPoint
from courier.contracts.result import ServiceResult
from courier.contracts.user import EligibleCandidate, MatchResult, User
from courier.persistence.repositories.user_repo import UserRepository
from courier.services.errors import NoEligibleRecipientsError
from courier.services.geometry import distance_category, distance_km, distance_weight

logger = logging.getLogger(__name__)

NO_ELIGIBLE_RECIPIENTS = "no_eligible_recipients"


@dataclass
class MatchingOptions:
    exclude_user_ids: list[str] = field(default_factory=list)
    min_distance_km: float | None = None
    max_candidates: int | None = None


@dataclass
class MatchingStatistics:
    total_users: int = 0
    eligible_users: int = 0
    opted_out_users: int = 0
    inactive_users: int = 0
    without_location: int = 0
    too_close_users: int = 0
    distance_distribution: dict[str, int] = field(default_factory=dict)


class TailwindMatcher:
    """Finds and draws eligible recipients."""

    def __init__(
        self,
        users: UserRepository | None = None,
        config: MatchingConfig | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._users = users
        self._config = config or MatchingConfig()
        self._rng = rng or random.Random()
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))

    def _inactive_cutoff(self, now: datetime) -> datetime:
        return now - timedelta(days=self._config.inactive_after_days)

    def _exclusion_reason(
        self,
        sender_id: str,
        sender_location: GeoPoint,
        user: User,
        cutoff: datetime,
        min_distance: float,
    ) -> str | None:
        """First rule *user* fails, or None when eligible."""
        if user.id == sender_id:
            return "sender"
        if user.opt_out_random:
            return "opted_out"
        if user.current_location is None:
            return "no_location"
        if user.last_active < cutoff:
            return "inactive"
        if distance_km(sender_location, user.current_location) < min_distance:
            return "too_close"
        return None

    def find_eligible_recipients(
        self,
        sender_id: str,
        sender_location: GeoPoint,
        pool: Iterable[User],
        now: datetime | None = None,
        min_distance_km: float | None = None,
    ) -> list[EligibleCandidate]:
        """Filter *pool* down to weighted candidates, preserving pool order."""
        cutoff = self._inactive_cutoff(now or self._clock())
        min_distance = self._config.min_distance_km if min_distance_km is None else min_distance_km

        candidates: list[EligibleCandidate] = []
        for user in pool:
            if self._exclusion_reason(sender_id, sender_location, user, cutoff, min_distance):
                continue
            d = distance_km(sender_location, user.current_location)
            candidates.append(EligibleCandidate(user=user, distance_km=d, weight=distance_weight(d)))
        return candidates

    def select_weighted_recipient(self, candidates: list[EligibleCandidate]) -> EligibleCandidate:
        """Draw one candidate with probability proportional to its weight."""
        if not candidates:
            raise NoEligibleRecipientsError("No eligible recipients to choose from")
        if len(candidates) == 1:
            return candidates[0]

        total = sum(c.weight for c in candidates)
        r = self._rng.random() * total
        cumulative = 0.0
        for candidate in candidates:
            cumulative += candidate.weight
            if cumulative >= r:
                return candidate
        # Float rounding can leave r a hair above the final sum
        return candidates[-1]

    async def find_random_recipient(
        self,
        sender_id: str,
        sender_location: GeoPoint,
        options: MatchingOptions | None = None,
    ) -> ServiceResult[MatchResult]:
        """Look up the active pool and draw a recipient from it."""
        if self._users is None:
            raise RuntimeError("TailwindMatcher needs a UserRepository to read the pool")
        options = options or MatchingOptions()
        now = self._clock()
        limit = options.max_candidates or self._config.max_candidates

        pool = await self._users.list_active_pool(self._inactive_cutoff(now), limit=limit)
        excluded = set(options.exclude_user_ids)
        pool = [u for u in pool if u.id not in excluded]

        candidates = self.find_eligible_recipients(
            sender_id, sender_location, pool, now=now, min_distance_km=options.min_distance_km,
        )
        if not candidates:
            logger.info("No eligible recipients for %s among %d users", sender_id, len(pool))
            return ServiceResult.fail(
                NO_ELIGIBLE_RECIPIENTS,
                "No eligible recipients found. Try again later!",
                total_candidates=len(pool),
            )

        chosen = self.select_weighted_recipient(candidates)
        logger.info(
            "Matched %s -> %s (%.0f km, %d eligible)",
            sender_id, chosen.user.id, chosen.distance_km, len(candidates),
        )
        return ServiceResult.ok(MatchResult(
            recipient=chosen.user,
            distance_km=chosen.distance_km,
            total_candidates=len(pool),
            eligible_candidates=len(candidates),
        ))

    def matching_statistics(
        self,
        sender_id: str,
        sender_location: GeoPoint,
        pool: Iterable[User],
        now: datetime | None = None,
    ) -> MatchingStatistics:
        """Why users in *pool* are or are not reachable from the sender."""
        cutoff = self._inactive_cutoff(now or self._clock())
        stats = MatchingStatistics()
        reasons: Counter[str] = Counter()
        buckets: Counter[str] = Counter()

        for user in pool:
            if user.id == sender_id:
                continue
            stats.total_users += 1
            reason = self._exclusion_reason(
                sender_id, sender_location, user, cutoff, self._config.min_distance_km,
            )
            if reason is None:
                d = distance_km(sender_location, user.current_location)
                buckets[distance_category(d).value] += 1
            reasons[reason or "eligible"] += 1

        stats.eligible_users = reasons["eligible"]
        stats.opted_out_users = reasons["opted_out"]
        stats.inactive_users = reasons["inactive"]
        stats.without_location = reasons["no_location"]
        stats.too_close_users = reasons["too_close"]
        stats.distance_distribution = dict(buckets)
        return stats

    async def validate_recipient(
        self,
        sender_id: str,
        sender_location: GeoPoint,
        recipient_id: str,
    ) -> str | None:
        """Reason the chosen recipient cannot receive from the sender, or None."""
        if recipient_id == sender_id:
            return "Cannot send message to yourself"
        if self._users is None:
            raise RuntimeError("TailwindMatcher needs a UserRepository to validate recipients")

        user = await self._users.get(recipient_id)
        if user is None:
            return "Recipient not found"

        reason = self._exclusion_reason(
            sender_id,
            sender_location,
            user,
            self._inactive_cutoff(self._clock()),
            self._config.min_distance_km,
        )
        return {
            None: None,
            "opted_out": "Recipient has opted out of random messages",
            "no_location": "Recipient location not available",
            "inactive": "Recipient has been inactive for too long",
            "too_close": f"Recipient is too close (less than {self._config.min_distance_km:.0f}km)",
        }[reason]
