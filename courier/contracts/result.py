"""Result wrapper for operations whose failure is an expected outcome.

Matching uses it so callers can fall back to a relaxed candidate set
instead of catching exceptions.
"""

from datetime import datetime, timezone
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ServiceError(BaseModel):
    """Machine-readable code plus the message shown to the sender."""

    code: str = Field(..., description="e.g. 'no_eligible_recipients'")
    message: str
    details: dict[str, str | int | float | bool | None] | None = None


class ServiceResult(BaseModel, Generic[T]):
    """``data`` on success, ``error`` on failure, never both."""

    success: bool
    data: T | None = None
    error: ServiceError | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))

    @classmethod
    def ok(cls, data: T) -> "ServiceResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(
        cls, code: str, message: str, **details: str | int | float | bool | None
    ) -> "ServiceResult[T]":
        return cls(
            success=False,
            error=ServiceError(code=code, message=message, details=details or None),
        )

    @property
    def error_code(self) -> str | None:
        return self.error.code if self.error else None
