"""Notification and RealtimeEvent: what users are told and pushed.

Notifications are stored at: ``/users/{user_id}/notifications/{id}``
RealtimeEvent is a transport payload and is never persisted.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import Field

from courier.contracts.common import FirestoreModel
from courier.contracts.enums import NotificationType, RealtimeEventType


class Notification(FirestoreModel):
    id: str | None = None
    user_id: str
    type: NotificationType
    title: str
    body: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    read: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))


class RealtimeEvent(FirestoreModel):
    type: RealtimeEventType
    message_id: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    sent_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
