"""OTP record store backed by Redis hashes."""

from datetime import datetime
from typing import Any, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from campus_assistant.stores.base import OTPRecord, RecordId, StoreError, as_utc


def _otp_key(email: str) -> str:
    """Generate the Redis key that scopes an OTP to a user's email."""
    return f"otp:{email}"


# No-ops once the key is gone; a deleted record is never recreated.
_UPDATE_IF_EXISTS = """
local unpack = table.unpack or unpack
if redis.call("EXISTS", KEYS[1]) == 1 then
    return redis.call("HSET", KEYS[1], unpack(ARGV))
end
return 0
"""

_INCREMENT_IF_EXISTS = """
if redis.call("EXISTS", KEYS[1]) == 1 then
    return redis.call("HINCRBY", KEYS[1], "attempts", 1)
end
return 0
"""


def _encode(fields: dict[str, Any]) -> dict[str, str]:
    encoded = {}
    for key, value in fields.items():
        if isinstance(value, datetime):
            encoded[key] = as_utc(value).isoformat()
        elif isinstance(value, bool):
            encoded[key] = "1" if value else "0"
        else:
            encoded[key] = str(value)
    return encoded


def _decode(key: str, data: dict[str, str]) -> OTPRecord:
    return OTPRecord(
        id=key,
        email=data["email"],
        code_hash=data["code_hash"],
        expires_at=as_utc(datetime.fromisoformat(data["expires_at"])),
        attempts=int(data.get("attempts", 0)),
        verified=data.get("verified") == "1",
        last_sent_at=as_utc(datetime.fromisoformat(data["last_sent_at"])),
    )


class RedisOTPStore:
    """Keep each pending OTP in a Redis hash; the record id is the key itself."""

    def __init__(self, redis_client: Redis, ttl_seconds: int):
        """Receive a Redis client created with `decode_responses=True`."""
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds

    async def find(self, email: str) -> Optional[OTPRecord]:
        key = _otp_key(email)
        try:
            data = await self.redis.hgetall(key)
        except RedisError as exc:
            raise StoreError(f"Failed to load OTP record: {exc}") from exc
        return _decode(key, data) if data else None

    async def upsert(self, email: str, fields: dict[str, Any]) -> OTPRecord:
        """Overwrite the hash and refresh its TTL in one MULTI/EXEC transaction."""
        key = _otp_key(email)
        mapping = _encode({"email": email, **fields})
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.delete(key)
                pipe.hset(key, mapping=mapping)
                pipe.expire(key, self.ttl_seconds)
                await pipe.execute()
        except RedisError as exc:
            raise StoreError(f"Failed to save OTP record: {exc}") from exc
        return _decode(key, mapping)

    async def update(self, record_id: RecordId, fields: dict[str, Any]) -> None:
        try:
            args = [item for pair in _encode(fields).items() for item in pair]
            await self.redis.eval(_UPDATE_IF_EXISTS, 1, record_id, *args)
        except RedisError as exc:
            raise StoreError(f"Failed to update OTP record: {exc}") from exc

    async def increment_attempts(self, record_id: RecordId) -> int:
        try:
            return int(await self.redis.eval(_INCREMENT_IF_EXISTS, 1, record_id))
        except RedisError as exc:
            raise StoreError(f"Failed to record OTP attempt: {exc}") from exc

    async def delete(self, record_id: RecordId) -> None:
        try:
            await self.redis.delete(record_id)
        except RedisError as exc:
            raise StoreError(f"Failed to delete OTP record: {exc}") from exc

    async def delete_by_email(self, email: str) -> None:
        await self.delete(_otp_key(email))
