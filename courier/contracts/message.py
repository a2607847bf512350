"""Message: a postcard carried by one flight.

Stored at: ``/messages/{message_id}``
"""

from datetime import datetime, timezone

from pydantic import Field

from courier.contracts.common import FirestoreModel, GeoPoint
from courier.contracts.enums import MessageStatus
from courier.contracts.flight import JourneyData


class Message(FirestoreModel):
    """A message in flight or delivered.

    ``status`` is the durable source of truth; the engine's in-memory
    state is authoritative only for live progress.
    """

    id: str | None = None
    sender_id: str = Field(..., min_length=1)
    recipient_id: str | None = None
    title: str = Field(..., min_length=1, max_length=100)
    content: str = Field(default="", max_length=280)
    sender_location: GeoPoint
    recipient_location: GeoPoint | None = None
    status: MessageStatus = MessageStatus.FLYING
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
    delivered_at: datetime | None = None
    journey: JourneyData | None = None
