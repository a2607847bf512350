"""Repository for per-user notifications at ``/users/{user_id}/notifications``."""

from __future__ import annotations

from typing import Any

from courier.contracts.notification import Notification
from courier.persistence.repositories.base import BaseRepository


class NotificationRepository(BaseRepository[Notification]):
    def __init__(self, client: Any = None):
        super().__init__(Notification, "notifications", client)

    def _user_collection(self, user_id: str):
        return (
            self._db().collection("users")
            .document(user_id)
            .collection(self._collection_name)
        )

    async def add(self, notification: Notification) -> str:
        """Store a notification under its user and return the new ID."""
        data = notification.to_firestore()
        data.pop("id", None)
        _, ref = await self._user_collection(notification.user_id).add(data)
        return ref.id

    async def list_for_user(self, user_id: str, unread_only: bool = False) -> list[Notification]:
        collection = self._user_collection(user_id)
        source = collection.where("read", "==", False) if unread_only else collection
        return [self._hydrate(doc) async for doc in source.stream()]

    async def mark_read(self, user_id: str, notification_id: str) -> None:
        await self._user_collection(user_id).document(notification_id).set({"read": True}, merge=True)
