"""Repository for user profiles and delivery statistics."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from courier.contracts.user import User
from courier.persistence.repositories.base import BaseRepository, to_firestore_datetime

# Fields owned by delivery; written without touching the rest of the profile
_STAT_FIELDS = {
    "total_journey_points",
    "current_rank",
    "total_flights_sent",
    "total_flights_received",
    "total_distance_traveled_km",
    "countries_visited",
    "states_visited",
    "achievements",
}


class UserRepository(BaseRepository[User]):
    def __init__(self, client: Any = None):
        super().__init__(User, "users", client)

    async def update_stats(self, user: User) -> None:
        """Persist the statistics fields of *user*."""
        data = user.model_dump(mode="json", include=_STAT_FIELDS)
        await self._collection_ref().document(user.id).set(data, merge=True)

    async def list_active_pool(self, active_since: datetime, limit: int = 1000) -> list[User]:
        """Users seen since *active_since*, at most *limit* of them."""
        query = (
            self._collection_ref()
            .where("last_active", ">=", to_firestore_datetime(active_since))
            .limit(limit)
        )
        return [self._hydrate(doc) async for doc in query.stream()]
