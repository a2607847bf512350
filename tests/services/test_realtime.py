"""Tests for the realtime hub and user notifications."""

from __future__ import annotations

import pytest

from courier.config import FlightEngineConfig
from courier.contracts.enums import NotificationType, RealtimeEventType, WeatherKind
from courier.contracts.flight import FlightProgress
from courier.contracts.notification import RealtimeEvent
from courier.contracts.weather import WeatherDetails, WeatherSample
from courier.persistence.repositories.notification_repo import NotificationRepository
from courier.services.flight_engine import FlightEngine
from courier.services.notifications import NotificationService
from courier.services.realtime import RealtimeHub
from courier.services.routing import RoutingEngine
from tests.helpers import LONDON, PARIS, T0


def _event(n: int = 0) -> RealtimeEvent:
    return RealtimeEvent(type=RealtimeEventType.NOTIFICATION, data={"n": n})


def _progress(pct: float, weather: WeatherSample | None = None) -> FlightProgress:
    return FlightProgress(
        message_id="m1",
        current_position=PARIS,
        progress_pct=pct,
        estimated_arrival=T0,
        current_weather=weather,
    )


class TestRealtimeHub:
    def test_offline_user(self):
        assert RealtimeHub().send_to_user("nobody", _event()) == 0

    def test_fan_out_to_every_connection(self):
        hub = RealtimeHub()
        first, second = hub.connect("alice"), hub.connect("alice")
        assert hub.send_to_user("alice", _event()) == 2
        assert first.qsize() == second.qsize() == 1

    def test_disconnect(self):
        hub = RealtimeHub()
        queue = hub.connect("alice")
        hub.disconnect("alice", queue)
        assert not hub.is_connected("alice")
        hub.disconnect("alice", queue)

    def test_full_queue_drops_oldest(self):
        hub = RealtimeHub(queue_size=2)
        queue = hub.connect("alice")
        for n in range(3):
            hub.send_to_user("alice", _event(n))
        assert [queue.get_nowait().data["n"] for _ in range(2)] == [1, 2]

    async def test_flight_streaming(self, weather_provider, clock):
        hub = RealtimeHub()
        engine = FlightEngine(RoutingEngine(clock=clock), weather_provider, FlightEngineConfig(), clock=clock, auto_start=False)
        queue = hub.connect("alice")
        await engine.initialize_flight("m1", LONDON, PARIS)
        hub.subscribe_flight(engine, "m1", "alice")
        hub.subscribe_flight(engine, "m1", "alice")

        clock.advance(hours=1)
        await engine.tick("m1")
        clock.advance(days=1)
        await engine.tick("m1")

        kinds = [queue.get_nowait().type for _ in range(queue.qsize())]
        assert kinds == [RealtimeEventType.FLIGHT_PROGRESS, RealtimeEventType.FLIGHT_DELIVERED]

    async def test_unsubscribe(self, weather_provider, clock):
        hub = RealtimeHub()
        engine = FlightEngine(RoutingEngine(clock=clock), weather_provider, FlightEngineConfig(), clock=clock, auto_start=False)
        queue = hub.connect("alice")
        await engine.initialize_flight("m1", LONDON, PARIS)
        hub.subscribe_flight(engine, "m1", "alice")
        assert hub.unsubscribe_flight(engine, "m1", "alice")
        assert not hub.unsubscribe_flight(engine, "m1", "alice")

        clock.advance(hours=1)
        await engine.tick("m1")
        assert queue.empty()

    async def test_subscription_released_on_completion(self, weather_provider, clock):
        hub = RealtimeHub()
        engine = FlightEngine(RoutingEngine(clock=clock), weather_provider, FlightEngineConfig(), clock=clock, auto_start=False)
        await engine.initialize_flight("m1", LONDON, PARIS)
        hub.subscribe_flight(engine, "m1", "alice")
        hub.subscribe_flight(engine, "m1", "bob")
        assert hub.flight_subscription_count == 2

        clock.advance(days=1)
        await engine.tick("m1")
        assert hub.flight_subscription_count == 0
        assert not hub.unsubscribe_flight(engine, "m1", "alice")

    async def test_unsubscribe_message_after_cancel(self, weather_provider, clock):
        hub = RealtimeHub()
        engine = FlightEngine(RoutingEngine(clock=clock), weather_provider, FlightEngineConfig(), clock=clock, auto_start=False)
        await engine.initialize_flight("m1", LONDON, PARIS)
        await engine.initialize_flight("m2", PARIS, LONDON)
        hub.subscribe_flight(engine, "m1", "alice")
        hub.subscribe_flight(engine, "m1", "bob")
        hub.subscribe_flight(engine, "m2", "alice")

        assert engine.cancel_flight("m1")
        assert hub.unsubscribe_message("m1") == 2
        assert hub.flight_subscription_count == 1
        assert hub.unsubscribe_message("m1") == 0


@pytest.fixture
def hub():
    return RealtimeHub()


@pytest.fixture
def service(fake_client, hub):
    return NotificationService(NotificationRepository(fake_client), hub)


class TestNotificationService:
    async def test_persist_and_push(self, service, hub):
        queue = hub.connect("carol")
        notification = await service.create_message_received_notification("carol", "alice", "Hello", "m1")

        assert notification.id
        assert notification.body == 'You received a message "Hello" from alice'
        event = queue.get_nowait()
        assert event.type == RealtimeEventType.NOTIFICATION
        assert event.message_id == "m1"
        assert event.data["id"] == notification.id

    async def test_list_and_mark_read(self, service):
        first = await service.create_system_alert("alice", "Maintenance", "Ducks resting")
        await service.create_reward_unlocked_notification("alice", "weather_forecast", "feature")

        assert len(await service.list_notifications("alice")) == 2
        await service.mark_as_read("alice", first.id)
        unread = await service.list_notifications("alice", unread_only=True)
        assert [n.type for n in unread] == [NotificationType.REWARD_UNLOCKED]

    async def test_without_storage(self, hub):
        service = NotificationService(hub=hub)
        notification = await service.create_system_alert("alice", "Hi", "There")
        assert notification.id is None
        assert await service.list_notifications("alice") == []

    @pytest.mark.parametrize(
        "pct,weather,expected",
        [
            (25, None, "Your duck has completed a quarter of its journey!"),
            (50.2, None, "Your duck is halfway there!"),
            (33, WeatherKind.STORM, "Your duck is 33% of the way to its destination Flying through a storm, speed reduced!"),
            (75, WeatherKind.RAIN, "Your duck is three-quarters of the way! Almost there! Flying through rain, taking it slow!"),
        ],
    )
    async def test_flight_update_text(self, service, pct, weather, expected):
        sample = None
        if weather is not None:
            sample = WeatherSample(kind=weather, intensity=0.8, speed_modifier=0.5, location=PARIS, observed_at=T0)
        notification = await service.create_flight_update_notification("alice", _progress(pct, sample))
        assert notification.body == expected
        assert notification.metadata["progress"] == round(pct)

    async def test_tailwind_text(self, service):
        sample = WeatherSample(
            kind=WeatherKind.WIND,
            intensity=0.8,
            speed_modifier=1.2,
            location=PARIS,
            observed_at=T0,
            details=WeatherDetails(wind_speed_kmh=40, wind_direction_deg=270),
        )
        notification = await service.create_flight_update_notification("alice", _progress(10, sample))
        assert notification.body.endswith("Tailwinds helping speed up the journey!")
