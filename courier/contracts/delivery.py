"""DeliveryAttemptRecord: retry bookkeeping for a pending delivery.

In-memory only: exists while a delivery is retrying and is removed on
success, cancellation or after the retry budget is spent.
"""

from datetime import datetime

from pydantic import Field

from courier.contracts.common import FirestoreModel
from courier.contracts.flight import FlightProgress


class DeliveryAttemptRecord(FirestoreModel):
    message_id: str
    attempt_count: int = Field(..., ge=0)
    last_attempt_at: datetime
    next_retry_at: datetime
    last_error: str | None = None
    final_progress: FlightProgress | None = None
