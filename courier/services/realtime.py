"""In-process real-time hub: per-user event queues and flight streaming.

Each connected client gets its own bounded ``asyncio.Queue``; whatever
transport sits in front (WebSocket, SSE) drains it. Pushing never blocks:
a full queue drops its oldest event.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Callable

from courier.contracts.enums import RealtimeEventType
from courier.contracts.flight import FlightProgress
from courier.contracts.notification import RealtimeEvent

if TYPE_CHECKING:
    from courier.services.flight_engine import FlightEngine

logger = logging.getLogger(__name__)

QUEUE_SIZE = 100


class RealtimeHub:
    def __init__(self, queue_size: int = QUEUE_SIZE):
        self._queue_size = queue_size
        self._connections: dict[str, list[asyncio.Queue[RealtimeEvent]]] = defaultdict(list)
        self._flight_subscriptions: dict[tuple[str, str], Callable[[FlightProgress], None]] = {}

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    def connect(self, user_id: str) -> asyncio.Queue[RealtimeEvent]:
        queue: asyncio.Queue[RealtimeEvent] = asyncio.Queue(maxsize=self._queue_size)
        self._connections[user_id].append(queue)
        logger.debug("User %s connected (%d open)", user_id, len(self._connections[user_id]))
        return queue

    def disconnect(self, user_id: str, queue: asyncio.Queue[RealtimeEvent]) -> None:
        queues = self._connections.get(user_id)
        if not queues:
            return
        if queue in queues:
            queues.remove(queue)
        if not queues:
            del self._connections[user_id]

    def is_connected(self, user_id: str) -> bool:
        return bool(self._connections.get(user_id))

    def send_to_user(self, user_id: str, event: RealtimeEvent) -> int:
        """Push *event* to every open connection of *user_id*.

        Returns the number of connections reached; zero when offline.
        """
        queues = self._connections.get(user_id, [])
        for queue in queues:
            if queue.full():
                queue.get_nowait()
                logger.warning("Dropping oldest event for slow consumer %s", user_id)
            queue.put_nowait(event)
        return len(queues)

    # ------------------------------------------------------------------
    # Flight streaming
    # ------------------------------------------------------------------

    def subscribe_flight(self, engine: FlightEngine, message_id: str, user_id: str) -> None:
        """Forward progress of *message_id* to *user_id* until unsubscribed.

        The subscription ends on its own once the final snapshot is sent.
        """
        key = (message_id, user_id)
        if key in self._flight_subscriptions:
            return

        def forward(progress: FlightProgress) -> None:
            kind = (
                RealtimeEventType.FLIGHT_DELIVERED
                if progress.is_complete
                else RealtimeEventType.FLIGHT_PROGRESS
            )
            if progress.is_complete:
                self._flight_subscriptions.pop(key, None)
            self.send_to_user(user_id, RealtimeEvent(
                type=kind,
                message_id=message_id,
                data=progress.to_firestore(),
            ))

        self._flight_subscriptions[key] = forward
        engine.on_flight_progress(message_id, forward)

    def unsubscribe_flight(self, engine: FlightEngine, message_id: str, user_id: str) -> bool:
        forward = self._flight_subscriptions.pop((message_id, user_id), None)
        if forward is None:
            return False
        engine.remove_flight_callback(message_id, forward)
        return True

    def unsubscribe_message(self, message_id: str) -> int:
        """Forget every subscription to a flight the engine no longer runs."""
        keys = [key for key in self._flight_subscriptions if key[0] == message_id]
        for key in keys:
            del self._flight_subscriptions[key]
        return len(keys)

    @property
    def flight_subscription_count(self) -> int:
        return len(self._flight_subscriptions)
