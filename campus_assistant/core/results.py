"""Structured outcomes returned by the OTP service.

The service never raises for expected failures. Each call returns an
`OTPResult` that is either a success carrying a value or a failure carrying
an `OTPError`; the API layer decides how to present it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from fastapi import status

T = TypeVar("T")


class OTPErrorKind(str, Enum):
    """Failure categories surfaced to callers."""

    INVALID_INPUT = "invalid_input"
    RATE_LIMITED = "rate_limited"
    DELIVERY_FAILED = "delivery_failed"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"
    INVALID_CODE = "invalid_code"
    USER_NOT_FOUND = "user_not_found"
    INTERNAL_ERROR = "internal_error"


ERROR_STATUS_CODES: dict[OTPErrorKind, int] = {
    OTPErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    OTPErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    OTPErrorKind.DELIVERY_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    OTPErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    OTPErrorKind.EXPIRED: status.HTTP_400_BAD_REQUEST,
    OTPErrorKind.ATTEMPTS_EXHAUSTED: status.HTTP_400_BAD_REQUEST,
    OTPErrorKind.INVALID_CODE: status.HTTP_400_BAD_REQUEST,
    OTPErrorKind.USER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    OTPErrorKind.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@dataclass(frozen=True)
class OTPError:
    """A user-displayable failure with optional numeric hints."""

    kind: OTPErrorKind
    message: str
    cooldown_seconds: Optional[int] = None
    remaining_attempts: Optional[int] = None

    @property
    def status_code(self) -> int:
        return ERROR_STATUS_CODES[self.kind]

    def to_detail(self) -> dict[str, Any]:
        """Serialize for an HTTP error body, omitting hints that do not apply."""
        detail: dict[str, Any] = {"error": self.message, "code": self.kind.value}
        if self.cooldown_seconds is not None:
            detail["cooldownSeconds"] = self.cooldown_seconds
        if self.remaining_attempts is not None:
            detail["remainingAttempts"] = self.remaining_attempts
        return detail


@dataclass(frozen=True)
class OTPResult(Generic[T]):
    """Either a success value or an error, never both."""

    value: Optional[T] = None
    error: Optional[OTPError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "OTPResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: OTPErrorKind, message: str, **hints: int) -> "OTPResult[T]":
        return cls(error=OTPError(kind=kind, message=message, **hints))
