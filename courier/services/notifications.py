"""User notifications: stored per user and pushed to live connections."""

from __future__ import annotations

import logging
from typing import Any

from courier.contracts.enums import NotificationType, RealtimeEventType, WeatherKind
from courier.contracts.flight import FlightProgress
from courier.contracts.notification import Notification, RealtimeEvent
from courier.persistence.repositories.notification_repo import NotificationRepository
from courier.services.realtime import RealtimeHub

logger = logging.getLogger(__name__)

_MILESTONES = {
    25: "Your duck has completed a quarter of its journey!",
    50: "Your duck is halfway there!",
    75: "Your duck is three-quarters of the way! Almost there!",
}


class NotificationService:
    def __init__(
        self,
        repository: NotificationRepository | None = None,
        hub: RealtimeHub | None = None,
    ):
        self._repository = repository
        self._hub = hub

    async def create_notification(
        self,
        user_id: str,
        type: NotificationType,
        title: str,
        body: str,
        metadata: dict[str, Any] | None = None,
    ) -> Notification:
        """Persist a notification, then push it to the user's connections."""
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            body=body,
            metadata=metadata or {},
        )
        if self._repository is not None:
            notification = notification.model_copy(
                update={"id": await self._repository.add(notification)}
            )
        if self._hub is not None:
            self._hub.send_to_user(user_id, RealtimeEvent(
                type=RealtimeEventType.NOTIFICATION,
                message_id=notification.metadata.get("message_id"),
                data=notification.to_firestore(),
            ))
        logger.debug("Notified %s: %s", user_id, title)
        return notification

    async def create_message_received_notification(
        self,
        recipient_id: str,
        sender_username: str,
        message_title: str,
        message_id: str | None = None,
    ) -> Notification:
        return await self.create_notification(
            recipient_id,
            NotificationType.MESSAGE_RECEIVED,
            "New Message Received!",
            f'You received a message "{message_title}" from {sender_username}',
            {"sender_name": sender_username, "message_title": message_title, "message_id": message_id},
        )

    async def create_flight_delivered_notification(
        self, sender_id: str, progress: FlightProgress
    ) -> Notification:
        return await self.create_notification(
            sender_id,
            NotificationType.FLIGHT_DELIVERED,
            "Message Delivered!",
            "Your duck has successfully delivered the message!",
            {"message_id": progress.message_id},
        )

    async def create_reward_unlocked_notification(
        self, user_id: str, description: str, kind: str
    ) -> Notification:
        return await self.create_notification(
            user_id,
            NotificationType.REWARD_UNLOCKED,
            "New Reward Unlocked!",
            f"You've unlocked: {description}",
            {"reward_name": description, "reward_type": kind},
        )

    async def create_flight_update_notification(
        self, user_id: str, progress: FlightProgress
    ) -> Notification:
        pct = round(progress.progress_pct)
        body = _MILESTONES.get(pct, f"Your duck is {pct}% of the way to its destination")

        weather = progress.current_weather
        if weather is not None:
            if weather.kind == WeatherKind.STORM:
                body += " Flying through a storm, speed reduced!"
            elif weather.kind == WeatherKind.RAIN:
                body += " Flying through rain, taking it slow!"
            elif weather.kind == WeatherKind.WIND:
                if weather.speed_modifier > 1:
                    body += " Tailwinds helping speed up the journey!"
                else:
                    body += " Headwinds slowing down the flight!"

        return await self.create_notification(
            user_id,
            NotificationType.FLIGHT_UPDATE,
            "Flight Update",
            body,
            {"message_id": progress.message_id, "progress": pct},
        )

    async def create_system_alert(
        self, user_id: str, title: str, body: str, metadata: dict[str, Any] | None = None
    ) -> Notification:
        return await self.create_notification(
            user_id, NotificationType.SYSTEM_ALERT, title, body, metadata,
        )

    async def list_notifications(self, user_id: str, unread_only: bool = False) -> list[Notification]:
        if self._repository is None:
            return []
        return await self._repository.list_for_user(user_id, unread_only=unread_only)

    async def mark_as_read(self, user_id: str, notification_id: str) -> None:
        if self._repository is not None:
            await self._repository.mark_read(user_id, notification_id)
