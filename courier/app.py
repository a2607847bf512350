"""Service wiring: builds every service once and connects them.

One ``CourierApp`` per process. The flight engine hands finished flights to
the delivery orchestrator; the realtime hub and notification service are
shared by both.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

import httpx

from courier.config import Settings
from courier.contracts.common import GeoPoint
from courier.contracts.message import Message
from courier.contracts.result import ServiceResult
from courier.persistence.repositories.message_repo import MessageRepository
from courier.persistence.repositories.notification_repo import NotificationRepository
from courier.persistence.repositories.user_repo import UserRepository
from courier.services.delivery import DeliveryOrchestrator
from courier.services.flight_engine import FlightEngine
from courier.services.matching import MatchingOptions, TailwindMatcher
from courier.services.notifications import NotificationService
from courier.services.ranking import RankingService
from courier.services.realtime import RealtimeHub
from courier.services.routing import RoutingEngine
from courier.services.weather.openmeteo_client import OpenMeteoClient
from courier.services.weather.provider import WeatherProvider

logger = logging.getLogger(__name__)


@dataclass
class CourierApp:
    settings: Settings
    messages: MessageRepository
    users: UserRepository
    hub: RealtimeHub
    notifications: NotificationService
    weather: WeatherProvider
    routing: RoutingEngine
    matcher: TailwindMatcher
    ranking: RankingService
    delivery: DeliveryOrchestrator
    engine: FlightEngine

    @classmethod
    def create(
        cls,
        settings: Settings | None = None,
        firestore: Any = None,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
        auto_start: bool = True,
    ) -> "CourierApp":
        """Build the service graph. *firestore* defaults to the shared client."""
        settings = settings or Settings()

        messages = MessageRepository(firestore)
        users = UserRepository(firestore)
        hub = RealtimeHub()
        notifications = NotificationService(NotificationRepository(firestore), hub)
        weather = WeatherProvider(
            OpenMeteoClient(http_client, base_url=settings.weather.base_url),
            settings.weather,
            clock=clock,
        )
        routing = RoutingEngine(settings.routing, clock=clock)
        ranking = RankingService(settings.rewards)
        delivery = DeliveryOrchestrator(
            messages, users, notifications,
            hub=hub, ranking=ranking, config=settings.delivery, clock=clock,
        )
        engine = FlightEngine(
            routing, weather, settings.flight,
            clock=clock,
            completion_handler=delivery.handle_flight_completion,
            auto_start=auto_start,
        )
        return cls(
            settings=settings,
            messages=messages,
            users=users,
            hub=hub,
            notifications=notifications,
            weather=weather,
            routing=routing,
            matcher=TailwindMatcher(users, settings.matching, rng=rng, clock=clock),
            ranking=ranking,
            delivery=delivery,
            engine=engine,
        )

    async def send_message(
        self,
        sender_id: str,
        title: str,
        content: str,
        sender_location: GeoPoint,
        recipient_id: str | None = None,
        options: MatchingOptions | None = None,
    ) -> ServiceResult[Message]:
        """Store a message and launch its flight.

        Without *recipient_id* the recipient is drawn by the matcher.
        """
        if recipient_id is None:
            match = await self.matcher.find_random_recipient(sender_id, sender_location, options)
            if not match.success:
                return ServiceResult.fail(match.error.code, match.error.message)
            recipient = match.data.recipient
        else:
            recipient = await self.users.get(recipient_id)
            if recipient is None:
                return ServiceResult.fail("recipient_not_found", "Recipient not found")
        if recipient.current_location is None:
            return ServiceResult.fail("recipient_location_unavailable", "Recipient location not available")

        message = Message(
            sender_id=sender_id,
            recipient_id=recipient.id,
            title=title,
            content=content,
            sender_location=sender_location,
            recipient_location=recipient.current_location,
        )
        message_id = await self.messages.create(message)

        state = await self.engine.initialize_flight(
            message_id, sender_location, recipient.current_location
        )
        if state is None:
            return ServiceResult.fail("flight_init_failed", "Failed to initialize flight")

        journey = self.engine.get_journey_data(message_id)
        await self.messages.update_journey(message_id, journey)

        sender = await self.users.get(sender_id)
        if sender is not None:
            await self.users.update_stats(
                sender.model_copy(update={"total_flights_sent": sender.total_flights_sent + 1})
            )

        logger.info("Message %s from %s to %s is flying", message_id, sender_id, recipient.id)
        return ServiceResult.ok(message.model_copy(update={"id": message_id, "journey": journey}))

    def cancel_message(self, message_id: str) -> bool:
        """Retract a message: stop its flight and drop its streams and pending retries."""
        cancelled = self.engine.cancel_flight(message_id)
        dropped = self.hub.unsubscribe_message(message_id)
        retries = self.delivery.cancel_delivery_retries(message_id)
        if cancelled or retries:
            logger.info("Message %s retracted (%d streams closed)", message_id, dropped)
        return cancelled or retries

    async def recover(self) -> int:
        """Deliver flying messages whose flights are already over."""
        return await self.delivery.process_pending_deliveries(self.engine)

    async def aclose(self) -> None:
        await self.engine.shutdown()
        await self.delivery.shutdown()
        await self.weather.aclose()
