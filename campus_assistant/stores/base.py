"""Storage contract for pending OTP records."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Protocol, Union

RecordId = Union[int, str]


class StoreError(Exception):
    """Raised when the backing store cannot complete an operation."""


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class OTPRecord:
    """Backend-neutral view of the single pending OTP for an email."""

    id: RecordId
    email: str
    code_hash: str = field(repr=False)
    expires_at: datetime
    attempts: int
    verified: bool
    last_sent_at: datetime


class OTPStore(Protocol):
    """Keyed by normalized email; at most one record per email."""

    async def find(self, email: str) -> Optional[OTPRecord]: ...

    async def upsert(self, email: str, fields: dict[str, Any]) -> OTPRecord: ...

    async def update(self, record_id: RecordId, fields: dict[str, Any]) -> None: ...

    async def increment_attempts(self, record_id: RecordId) -> int: ...

    async def delete(self, record_id: RecordId) -> None: ...

    async def delete_by_email(self, email: str) -> None: ...
