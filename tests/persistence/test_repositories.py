"""Unit tests for Firestore repositories using FakeFirestoreClient."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import patch

import pytest

from courier.contracts.enums import MessageStatus, NotificationType
from courier.contracts.flight import JourneyData
from courier.contracts.message import Message
from courier.contracts.notification import Notification
from courier.contracts.user import User
from courier.persistence import firestore_client
from courier.persistence.errors import DocumentNotFoundError
from courier.persistence.repositories.message_repo import MessageRepository
from courier.persistence.repositories.notification_repo import NotificationRepository
from courier.persistence.repositories.user_repo import UserRepository
from tests.helpers import LONDON, NEW_YORK, T0
from tests.persistence.fake_firestore import FakeDocumentRef


def _message(**kwargs) -> Message:
    defaults = dict(
        sender_id="alice",
        recipient_id="carol",
        title="Hello",
        sender_location=LONDON,
        recipient_location=NEW_YORK,
        created_at=T0,
    )
    defaults.update(kwargs)
    return Message(**defaults)


@pytest.fixture
def messages(fake_client):
    return MessageRepository(fake_client)


@pytest.fixture
def users(fake_client):
    return UserRepository(fake_client)


# ---------------------------------------------------------------------------
# Base repository
# ---------------------------------------------------------------------------


class TestBaseRepository:
    async def test_create_and_get(self, messages, fake_client):
        message_id = await messages.create(_message())
        assert f"messages/{message_id}" in fake_client.store

        fetched = await messages.get(message_id)
        assert fetched.id == message_id
        assert fetched.sender_location == LONDON
        assert fetched.status == MessageStatus.FLYING
        assert fetched.created_at == T0

    async def test_create_with_id(self, messages):
        assert await messages.create(_message(id="m1")) == "m1"
        assert (await messages.get("m1")).title == "Hello"

    async def test_get_missing(self, messages):
        assert await messages.get("nope") is None
        with pytest.raises(DocumentNotFoundError) as exc:
            await messages.get_or_raise("nope")
        assert exc.value.path == "messages/nope"

    async def test_update_and_delete(self, messages):
        await messages.create(_message(id="m1"))
        await messages.update("m1", _message(title="Bonjour"))
        assert (await messages.get("m1")).title == "Bonjour"

        await messages.delete("m1")
        assert await messages.list_all() == []

    async def test_default_client_is_shared(self, fake_client):
        with patch(
            "courier.persistence.repositories.base.get_firestore_client",
            return_value=fake_client,
        ):
            repo = MessageRepository()
            await repo.create(_message(id="m1"))
        assert "messages/m1" in fake_client.store


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class TestMessageRepository:
    async def test_mark_delivered(self, messages, fake_client):
        await messages.create(_message(id="m1"))
        assert await messages.mark_delivered("m1", T0) == 1

        message = await messages.get("m1")
        assert message.status == MessageStatus.DELIVERED
        assert message.delivered_at == T0

    async def test_mark_delivered_only_once(self, messages):
        await messages.create(_message(id="m1"))
        assert await messages.mark_delivered("m1", T0) == 1
        assert await messages.mark_delivered("m1", T0 + timedelta(seconds=1)) == 0
        assert (await messages.get("m1")).delivered_at == T0

    async def test_mark_delivered_missing(self, messages):
        assert await messages.mark_delivered("nope", T0) == 0

    async def test_concurrent_writer_wins(self, messages, fake_client, monkeypatch):
        await messages.create(_message(id="m1"))
        real_get = FakeDocumentRef.get

        async def get_then_interfere(self):
            snapshot = await real_get(self)
            # Another writer touches the document between read and write
            await FakeDocumentRef.set(self, {"content": "edited"}, merge=True)
            return snapshot

        monkeypatch.setattr(FakeDocumentRef, "get", get_then_interfere)
        assert await messages.mark_delivered("m1", T0) == 0
        assert fake_client.store["messages/m1"]["status"] == "flying"

    async def test_update_journey(self, messages):
        await messages.create(_message(id="m1"))
        journey = JourneyData(total_distance_km=5570.0, estimated_duration_s=401040, estimated_arrival=T0)
        await messages.update_journey("m1", journey)

        message = await messages.get("m1")
        assert message.journey.total_distance_km == 5570.0
        assert message.title == "Hello"

    async def test_list_by_status(self, messages):
        await messages.create(_message(id="m1"))
        await messages.create(_message(id="m2"))
        await messages.mark_delivered("m2", T0)

        flying = await messages.list_by_status(MessageStatus.FLYING)
        assert [m.id for m in flying] == ["m1"]
        delivered = await messages.list_by_status("delivered")
        assert [m.id for m in delivered] == ["m2"]


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class TestUserRepository:
    async def test_update_stats_leaves_profile_alone(self, users, fake_client):
        await users.create(User(id="carol", username="carol", current_location=NEW_YORK, last_active=T0))
        fake_client.store["users/carol"]["username"] = "carol.renamed"

        carol = User(id="carol", username="carol", total_journey_points=1200, current_rank="Novice Navigator")
        await users.update_stats(carol)

        stored = await users.get("carol")
        assert stored.username == "carol.renamed"
        assert stored.current_location == NEW_YORK
        assert stored.total_journey_points == 1200
        assert stored.current_rank == "Novice Navigator"

    async def test_list_active_pool(self, users):
        await users.create(User(id="fresh", username="fresh", last_active=T0))
        await users.create(User(id="stale", username="stale", last_active=T0 - timedelta(days=30)))
        await users.create(User(id="recent", username="recent", last_active=T0 - timedelta(days=3)))

        pool = await users.list_active_pool(T0 - timedelta(days=14))
        assert sorted(u.id for u in pool) == ["fresh", "recent"]
        assert len(await users.list_active_pool(T0 - timedelta(days=14), limit=1)) == 1


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class TestNotificationRepository:
    async def test_stored_under_user(self, fake_client):
        repo = NotificationRepository(fake_client)
        notification_id = await repo.add(Notification(
            user_id="carol", type=NotificationType.SYSTEM_ALERT, title="Hi", body="There",
        ))
        assert f"users/carol/notifications/{notification_id}" in fake_client.store

        listed = await repo.list_for_user("carol")
        assert [n.id for n in listed] == [notification_id]
        assert await repo.list_for_user("alice") == []

    async def test_mark_read(self, fake_client):
        repo = NotificationRepository(fake_client)
        notification_id = await repo.add(Notification(
            user_id="carol", type=NotificationType.SYSTEM_ALERT, title="Hi", body="There",
        ))
        await repo.mark_read("carol", notification_id)
        assert await repo.list_for_user("carol", unread_only=True) == []


# ---------------------------------------------------------------------------
# Shared client
# ---------------------------------------------------------------------------


class TestFirestoreClient:
    @pytest.fixture(autouse=True)
    def fresh_client(self):
        firestore_client._reset_client()
        yield
        firestore_client._reset_client()

    def test_created_once(self, monkeypatch):
        monkeypatch.delenv("COURIER_FIRESTORE_PROJECT", raising=False)
        with patch("courier.persistence.firestore_client.AsyncClient") as factory:
            first = firestore_client.get_firestore_client()
            assert firestore_client.get_firestore_client() is first
        factory.assert_called_once_with()

    def test_project_override(self, monkeypatch):
        monkeypatch.setenv("COURIER_FIRESTORE_PROJECT", "courier-test")
        with patch("courier.persistence.firestore_client.AsyncClient") as factory:
            firestore_client.get_firestore_client()
        factory.assert_called_once_with(project="courier-test")
