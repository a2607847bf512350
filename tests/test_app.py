"""End-to-end: send a message, fly it, deliver it."""

from __future__ import annotations

import random

import pytest

from courier.app import CourierApp
from courier.config import Settings
from courier.contracts.enums import MessageStatus
from courier.contracts.user import User
from courier.persistence.repositories.user_repo import UserRepository
from courier.services.matching import NO_ELIGIBLE_RECIPIENTS
from tests.helpers import LONDON, NEW_YORK, T0
from tests.persistence.fake_firestore import FakeFirestoreClient


@pytest.fixture
async def seeded(fake_client):
    users = UserRepository(fake_client)
    await users.create(User(id="alice", username="alice", current_location=LONDON, last_active=T0))
    await users.create(User(id="carol", username="carol", current_location=NEW_YORK, last_active=T0))
    return fake_client


@pytest.fixture
async def app(seeded, weather_http, clock):
    app = CourierApp.create(
        settings=Settings(),
        firestore=seeded,
        http_client=weather_http,
        clock=clock,
        rng=random.Random(7),
        auto_start=False,
    )
    yield app
    await app.aclose()


async def _fly_until_delivered(app: CourierApp, message_id: str, clock) -> None:
    for _ in range(50):
        clock.advance(hours=10)
        if await app.engine.tick(message_id) is None:
            return
    raise AssertionError("flight never arrived")


class TestSendMessage:
    async def test_matched_message_is_delivered(self, app, clock):
        result = await app.send_message("alice", "Hello", "Greetings from London", LONDON)

        assert result.success
        message = result.data
        assert message.recipient_id == "carol"
        assert message.journey.total_distance_km == pytest.approx(5570, rel=0.01)
        stored = await app.messages.get(message.id)
        assert stored.status == MessageStatus.FLYING
        assert stored.journey.estimated_arrival is not None
        assert (await app.users.get("alice")).total_flights_sent == 1

        await _fly_until_delivered(app, message.id, clock)

        stored = await app.messages.get(message.id)
        assert stored.status == MessageStatus.DELIVERED
        assert stored.journey.current_progress == 100.0
        carol = await app.users.get("carol")
        assert carol.total_flights_received == 1
        assert carol.total_journey_points > 5000

    async def test_explicit_recipient(self, app):
        result = await app.send_message("alice", "Hello", "", LONDON, recipient_id="carol")
        assert result.success
        assert app.engine.get_flight_state(result.data.id) is not None

    async def test_unknown_recipient(self, app):
        result = await app.send_message("alice", "Hello", "", LONDON, recipient_id="nobody")
        assert result.error_code == "recipient_not_found"

    async def test_cancel_message_releases_streams(self, app, clock):
        result = await app.send_message("alice", "Hello", "Greetings from London", LONDON)
        message_id = result.data.id
        queue = app.hub.connect("carol")
        app.hub.subscribe_flight(app.engine, message_id, "carol")

        assert app.cancel_message(message_id)
        assert app.hub.flight_subscription_count == 0
        assert app.engine.get_flight_state(message_id) is None
        assert not app.cancel_message(message_id)

        clock.advance(hours=10)
        assert await app.engine.tick(message_id) is None
        assert queue.empty()

    async def test_no_eligible_recipients(self, weather_http, clock):
        lonely = FakeFirestoreClient()
        await UserRepository(lonely).create(
            User(id="alice", username="alice", current_location=LONDON, last_active=T0)
        )
        app = CourierApp.create(
            settings=Settings(), firestore=lonely, http_client=weather_http, clock=clock, auto_start=False,
        )
        try:
            result = await app.send_message("alice", "Hello", "", LONDON)
        finally:
            await app.aclose()
        assert result.error_code == NO_ELIGIBLE_RECIPIENTS
        assert lonely.store.keys() == {"users/alice"}


class TestRecovery:
    async def test_restart_delivers_overdue_messages(self, app, seeded, weather_http, clock):
        result = await app.send_message("alice", "Hello", "", LONDON)
        await app.engine.shutdown()

        restarted = CourierApp.create(
            settings=Settings(), firestore=seeded, http_client=weather_http, clock=clock, auto_start=False,
        )
        assert await restarted.recover() == 0

        clock.advance(days=10)
        assert await restarted.recover() == 1
        assert (await restarted.messages.get(result.data.id)).status == MessageStatus.DELIVERED
        await restarted.engine.shutdown()
