"""Service-level exceptions."""


class CourierError(Exception):
    """Base exception for all simulation engine errors."""


class InvalidLocationError(CourierError):
    """Raised when a coordinate is missing, non-finite or out of range."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid location: {reason}")


class NoEligibleRecipientsError(CourierError):
    """Raised when weighted selection is asked to pick from nobody."""


class DeliveryError(CourierError):
    """Why a delivery attempt failed; carried into the retry schedule, not raised."""

    def __init__(self, message_id: str, reason: str):
        self.message_id = message_id
        self.reason = reason
        super().__init__(f"Delivery of {message_id} failed: {reason}")
