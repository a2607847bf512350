"""Delivery orchestrator: turns a finished flight into a delivered message.

The storage write ``flying -> delivered`` is conditional, so a message is
delivered at most once however many times completion fires. Everything
after that write (notifications, statistics, journey write-back) is
best-effort: each step is logged and isolated on failure, none of them
can undo the transition.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Awaitable, Callable

from courier.config import DeliveryConfig
from courier.contracts.delivery import DeliveryAttemptRecord
from courier.contracts.enums import MessageStatus, RealtimeEventType
from courier.contracts.flight import FlightProgress, JourneyData
from courier.contracts.message import Message
from courier.contracts.notification import RealtimeEvent
from courier.persistence.repositories.message_repo import MessageRepository
from courier.persistence.repositories.user_repo import UserRepository
from courier.services.errors import DeliveryError
from courier.services.geometry import distance_km
from courier.services.notifications import NotificationService
from courier.services.ranking import RankingService
from courier.services.realtime import RealtimeHub

if TYPE_CHECKING:
    from courier.services.flight_engine import FlightEngine

logger = logging.getLogger(__name__)


class DeliveryOrchestrator:
    def __init__(
        self,
        messages: MessageRepository,
        users: UserRepository,
        notifications: NotificationService,
        hub: RealtimeHub | None = None,
        ranking: RankingService | None = None,
        config: DeliveryConfig | None = None,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ):
        self._messages = messages
        self._users = users
        self._notifications = notifications
        self._hub = hub
        self._ranking = ranking or RankingService()
        self._config = config or DeliveryConfig()
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))
        self._sleep = sleep

        self._records: dict[str, DeliveryAttemptRecord] = {}
        self._retry_tasks: dict[str, asyncio.Task] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def deliver_message(self, message_id: str, final_progress: FlightProgress) -> bool:
        """Deliver once. ``True`` if delivered now or before, ``False`` otherwise."""
        message = await self._messages.get(message_id)
        if message is None:
            logger.warning("Cannot deliver %s: message not found", message_id)
            return False
        if message.status == MessageStatus.DELIVERED:
            logger.debug("Message %s already delivered", message_id)
            return True

        delivered_at = self._clock()
        changed = await self._messages.mark_delivered(message_id, delivered_at)
        if changed == 0:
            logger.info("Delivery of %s lost the status transition", message_id)
            return False

        logger.info("Message %s delivered to %s", message_id, message.recipient_id)
        await self._after_delivery(message, final_progress, delivered_at)
        return True

    async def _after_delivery(
        self, message: Message, progress: FlightProgress, delivered_at: datetime
    ) -> None:
        distance = self._journey_distance(message, progress)
        sender = await self._step("load sender", message.id, self._users.get(message.sender_id))
        sender_name = sender.username if sender else "Someone"

        if message.recipient_id:
            await self._step(
                "notify recipient", message.id,
                self._notifications.create_message_received_notification(
                    message.recipient_id, sender_name, message.title, message.id,
                ),
            )
        await self._step(
            "notify sender", message.id,
            self._notifications.create_flight_delivered_notification(message.sender_id, progress),
        )

        points = await self._step(
            "update recipient stats", message.id,
            self._update_recipient(message, progress, distance),
        )

        if self._hub is not None and message.recipient_id:
            self._hub.send_to_user(message.recipient_id, RealtimeEvent(
                type=RealtimeEventType.MESSAGE_DELIVERED,
                message_id=message.id,
                data={
                    "sender_name": sender_name,
                    "title": message.title,
                    "distance_km": round(distance, 1),
                    "journey_points": points or 0,
                },
            ))

        journey = (message.journey or JourneyData(total_distance_km=distance, estimated_duration_s=0))
        journey = journey.model_copy(update={
            "total_distance_km": distance,
            "current_progress": 100.0,
            "final_position": progress.current_position,
            "weather_events": progress.weather_events or journey.weather_events,
            "journey_points_earned": points or 0,
            "delivered_at": delivered_at,
        })
        await self._step(
            "write journey", message.id, self._messages.update_journey(message.id, journey),
        )

    @staticmethod
    def _journey_distance(message: Message, progress: FlightProgress) -> float:
        if progress.total_distance_km is not None:
            return progress.total_distance_km
        if message.journey is not None:
            return message.journey.total_distance_km
        if message.recipient_location is not None:
            return distance_km(message.sender_location, message.recipient_location)
        return 0.0

    async def _update_recipient(
        self, message: Message, progress: FlightProgress, distance: float
    ) -> int:
        """Fold the delivery into the recipient's stats; returns points earned."""
        if not message.recipient_id:
            return 0
        recipient = await self._users.get(message.recipient_id)
        if recipient is None:
            logger.warning("Recipient %s of %s not found", message.recipient_id, message.id)
            return 0

        points = self._ranking.calculate_journey_points(
            distance, progress.weather_events, message.sender_location, recipient,
        )
        updated, advancement = self._ranking.apply_delivery(recipient, points, distance)
        await self._users.update_stats(updated)
        logger.info(
            "%s earned %d points (%s)", recipient.id, points.total_points, "; ".join(points.lines),
        )

        if advancement is not None:
            logger.info("%s advanced to %s", recipient.id, advancement.new_rank)
            await self._notifications.create_reward_unlocked_notification(
                recipient.id, f"{advancement.new_rank} rank", "rank",
            )
            for reward in advancement.rewards_unlocked:
                await self._notifications.create_reward_unlocked_notification(
                    recipient.id, reward, "feature",
                )
        return points.total_points

    async def _step(self, name: str, message_id: str, coro):
        try:
            return await coro
        except Exception:
            logger.exception("Post-delivery step '%s' failed for %s", name, message_id)
            return None

    # ------------------------------------------------------------------
    # Completion + retries
    # ------------------------------------------------------------------

    async def handle_flight_completion(self, message_id: str, final_progress: FlightProgress) -> bool:
        """Entry point for the flight engine at 100%."""
        record = self._records.get(message_id)
        if record is not None:
            record.final_progress = final_progress
        return await self._attempt(message_id, final_progress)

    async def _attempt(self, message_id: str, final_progress: FlightProgress) -> bool:
        lock = self._locks.setdefault(message_id, asyncio.Lock())
        async with lock:
            try:
                delivered = await self.deliver_message(message_id, final_progress)
            except Exception as exc:
                logger.exception("Delivery attempt for %s raised", message_id)
                failure = DeliveryError(message_id, str(exc) or type(exc).__name__)
            else:
                if delivered:
                    self._forget(message_id)
                    return True
                failure = DeliveryError(message_id, "status transition changed nothing")

            await self._schedule_retry(message_id, final_progress, failure)
            return False

    async def _schedule_retry(
        self, message_id: str, final_progress: FlightProgress, failure: DeliveryError
    ) -> None:
        now = self._clock()
        record = self._records.get(message_id)
        if record is None:
            record = DeliveryAttemptRecord(
                message_id=message_id,
                attempt_count=0,
                last_attempt_at=now,
                next_retry_at=now,
                final_progress=final_progress,
            )
            self._records[message_id] = record

        record.last_attempt_at = now
        record.last_error = failure.reason
        if record.attempt_count >= self._config.max_retries:
            await self._give_up(record)
            return

        delay = self._config.retry_delay(record.attempt_count)
        record.attempt_count += 1
        record.next_retry_at = now + timedelta(seconds=delay)
        logger.warning(
            "Delivery of %s failed (%s), retry %d/%d in %.1fs",
            message_id, failure.reason, record.attempt_count, self._config.max_retries, delay,
        )
        self._retry_tasks[message_id] = asyncio.create_task(
            self._retry_after(message_id, delay), name=f"delivery-retry-{message_id}"
        )

    async def _retry_after(self, message_id: str, delay: float) -> None:
        try:
            await self._sleep(delay)
            record = self._records.get(message_id)
            if record is None:
                return
            await self._attempt(message_id, record.final_progress)
        finally:
            if self._retry_tasks.get(message_id) is asyncio.current_task():
                del self._retry_tasks[message_id]

    async def _give_up(self, record: DeliveryAttemptRecord) -> None:
        message_id = record.message_id
        logger.error(
            "Delivery of %s failed after %d retries: %s",
            message_id, record.attempt_count, record.last_error,
        )
        self._forget(message_id)
        try:
            message = await self._messages.get(message_id)
            if message is None:
                return
            await self._notifications.create_system_alert(
                message.sender_id,
                "Delivery Failed",
                f'Your message "{message.title}" could not be delivered. We will keep trying.',
                {"message_id": message_id, "attempts": record.attempt_count + 1},
            )
        except Exception:
            logger.exception("Could not alert sender about failed delivery of %s", message_id)

    def _forget(self, message_id: str) -> None:
        self._records.pop(message_id, None)
        self._locks.pop(message_id, None)

    def cancel_delivery_retries(self, message_id: str) -> bool:
        record = self._records.pop(message_id, None)
        task = self._retry_tasks.pop(message_id, None)
        if task is not None and task is not asyncio.current_task():
            task.cancel()
        self._locks.pop(message_id, None)
        return record is not None or task is not None

    def get_pending_deliveries(self) -> list[DeliveryAttemptRecord]:
        return [record.model_copy() for record in self._records.values()]

    def get_delivery_status(self, message_id: str) -> DeliveryAttemptRecord | None:
        record = self._records.get(message_id)
        return record.model_copy() if record else None

    async def wait_for_retries(self) -> None:
        """Block until every scheduled retry has run, including ones they schedule."""
        while self._retry_tasks:
            await asyncio.gather(*list(self._retry_tasks.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        tasks = list(self._retry_tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._retry_tasks.clear()
        self._records.clear()
        self._locks.clear()

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    async def process_pending_deliveries(self, engine: FlightEngine | None = None) -> int:
        """Deliver every ``flying`` message whose flight has in fact finished.

        A flight counts as finished when the engine holds a 100% snapshot for
        it, or, when the engine no longer knows it (e.g. after a restart),
        when the stored journey's estimated arrival has passed. Returns the
        number of messages delivered.
        """
        now = self._clock()
        delivered = 0
        for message in await self._messages.list_by_status(MessageStatus.FLYING):
            if message.id in self._records:
                continue
            progress = engine.get_flight_progress(message.id) if engine else None
            if progress is None:
                progress = self._arrived_from_journey(message, now)
            if progress is None or not progress.is_complete:
                continue
            try:
                if await self.deliver_message(message.id, progress):
                    delivered += 1
            except Exception:
                logger.exception("Recovery delivery of %s failed", message.id)
        logger.info("Recovery sweep delivered %d message(s)", delivered)
        return delivered

    @staticmethod
    def _arrived_from_journey(message: Message, now: datetime) -> FlightProgress | None:
        journey = message.journey
        if journey is None or journey.estimated_arrival is None or journey.estimated_arrival > now:
            return None
        if message.recipient_location is not None:
            position = message.recipient_location
        elif journey.route:
            position = journey.route[-1].location
        else:
            return None
        return FlightProgress(
            message_id=message.id,
            current_position=position,
            progress_pct=100.0,
            estimated_arrival=journey.estimated_arrival,
            total_distance_km=journey.total_distance_km,
            distance_covered_km=journey.total_distance_km,
            weather_events=journey.weather_events,
        )
