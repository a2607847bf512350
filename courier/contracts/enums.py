"""Enumerations shared across all Tailwind Courier contracts."""

from enum import Enum


class TerrainKind(str, Enum):
    """Terrain under a route point, derived from fixed bounding regions."""
    OCEAN = "ocean"
    LAND = "land"
    MOUNTAIN = "mountain"
    DESERT = "desert"


class WeatherKind(str, Enum):
    CLEAR = "clear"
    RAIN = "rain"
    STORM = "storm"
    WIND = "wind"


class FlightStatus(str, Enum):
    """Lifecycle of a simulated flight inside the engine."""
    INITIALIZING = "initializing"
    FLYING = "flying"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class MessageStatus(str, Enum):
    """Durable status of a message, owned by storage."""
    FLYING = "flying"
    DELIVERED = "delivered"


class DistanceCategory(str, Enum):
    LOCAL = "local"
    REGIONAL = "regional"
    NATIONAL = "national"
    CONTINENTAL = "continental"
    INTERCONTINENTAL = "intercontinental"


class NotificationType(str, Enum):
    FLIGHT_UPDATE = "flight.update"
    FLIGHT_DELIVERED = "flight.delivered"
    MESSAGE_RECEIVED = "message.received"
    REWARD_UNLOCKED = "reward.unlocked"
    SYSTEM_ALERT = "system.alert"


class RealtimeEventType(str, Enum):
    FLIGHT_PROGRESS = "flight.progress"
    FLIGHT_DELIVERED = "flight.delivered"
    MESSAGE_DELIVERED = "message_delivered"
    NOTIFICATION = "notification"
