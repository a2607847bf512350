"""Tailwind Courier data contracts, as Pydantic v2 models.

Data authority
--------------

**Firestore** (source of truth for durable state):
- ``Message``: ``/messages/{id}`` (status ``flying``/``delivered``, journey data)
- ``User``: ``/users/{id}`` (location, statistics, rank)
- ``Notification``: ``/users/{uid}/notifications/{id}``

**In-memory** (owned by one service object, lost on restart):
- flight state: the flight engine's active map
- ``DeliveryAttemptRecord``: the delivery orchestrator's retry map
- weather samples: the weather provider's 10-minute cache

Calculated (never persisted)
----------------------------
- ``Route`` / ``Waypoint``: until embedded in ``JourneyData``
- ``FlightProgress``: subscriber and delivery snapshots
- ``EligibleCandidate`` / ``MatchResult``: per matching call
- ``RealtimeEvent``: transport payloads
"""

from courier.contracts.enums import (
    DistanceCategory,
    FlightStatus,
    MessageStatus,
    NotificationType,
    RealtimeEventType,
    TerrainKind,
    WeatherKind,
)
from courier.contracts.common import FirestoreModel, GeoPoint
from courier.contracts.result import ServiceError, ServiceResult
from courier.contracts.route import Route, Waypoint
from courier.contracts.weather import WeatherDetails, WeatherSample
from courier.contracts.flight import FlightProgress, JourneyData
from courier.contracts.message import Message
from courier.contracts.user import (
    EligibleCandidate,
    MatchResult,
    RankAdvancement,
    RankDefinition,
    User,
)
from courier.contracts.notification import Notification, RealtimeEvent
from courier.contracts.delivery import DeliveryAttemptRecord

__all__ = [
    # Enums
    "DistanceCategory",
    "FlightStatus",
    "MessageStatus",
    "NotificationType",
    "RealtimeEventType",
    "TerrainKind",
    "WeatherKind",
    # Common
    "FirestoreModel",
    "GeoPoint",
    # Result
    "ServiceError",
    "ServiceResult",
    # Domain models
    "Route",
    "Waypoint",
    "WeatherDetails",
    "WeatherSample",
    "FlightProgress",
    "JourneyData",
    "Message",
    "EligibleCandidate",
    "MatchResult",
    "RankAdvancement",
    "RankDefinition",
    "User",
    "Notification",
    "RealtimeEvent",
    "DeliveryAttemptRecord",
]
