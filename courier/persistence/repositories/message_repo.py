"""Repository for messages and their in-flight status."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from google.api_core.exceptions import FailedPrecondition, NotFound

from courier.contracts.enums import MessageStatus
from courier.contracts.flight import JourneyData
from courier.contracts.message import Message
from courier.persistence.repositories.base import BaseRepository, to_firestore_datetime

logger = logging.getLogger(__name__)


class MessageRepository(BaseRepository[Message]):
    def __init__(self, client: Any = None):
        super().__init__(Message, "messages", client)

    async def mark_delivered(self, message_id: str, delivered_at: datetime) -> int:
        """Move a message from ``flying`` to ``delivered``.

        The write carries a ``last_update_time`` precondition taken from the
        read, so of two concurrent callers at most one succeeds. Returns the
        number of documents changed: 1 on success, 0 when the message is
        missing, not flying, or another writer got there first.
        """
        ref = self._collection_ref().document(message_id)
        snapshot = await ref.get()
        if not snapshot.exists:
            return 0
        if snapshot.to_dict().get("status") != MessageStatus.FLYING:
            return 0

        option = self._db().write_option(last_update_time=snapshot.update_time)
        try:
            await ref.update(
                {
                    "status": MessageStatus.DELIVERED.value,
                    "delivered_at": to_firestore_datetime(delivered_at),
                },
                option=option,
            )
        except (FailedPrecondition, NotFound):
            logger.info("Message %s changed while marking it delivered", message_id)
            return 0
        return 1

    async def update_journey(self, message_id: str, journey: JourneyData) -> None:
        await (
            self._collection_ref()
            .document(message_id)
            .set({"journey": journey.to_firestore()}, merge=True)
        )

    async def list_by_status(self, status: MessageStatus) -> list[Message]:
        """Return all messages with a given status."""
        query = self._collection_ref().where("status", "==", MessageStatus(status).value)
        return [self._hydrate(doc) async for doc in query.stream()]
