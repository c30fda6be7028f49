"""OTP issuance and verification for email ownership checks.

`OTPService` composes three injected collaborators: an OTP record store, an
email sender and the client user store. Expected failures come back as
`OTPResult` values; only programming errors propagate as exceptions.
"""

import logging
import math
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from campus_assistant.core.config import Settings
from campus_assistant.core.results import OTPErrorKind, OTPResult
from campus_assistant.core.security import OTPHasher
from campus_assistant.services.email import EmailSender
from campus_assistant.services.users import ClientUserStore
from campus_assistant.stores.base import OTPRecord, OTPStore, StoreError

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
CODE_PATTERN = re.compile(r"^\d{6}$")

OTP_MIN = 100000
OTP_MAX = 999999


def generate_otp() -> str:
    """Return a uniformly random code in [100000, 999999]; never zero-padded."""
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


def normalize_email(email: str) -> str:
    return email.strip().lower()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def remaining_cooldown_seconds(last_sent_at: Optional[datetime], now: datetime, cooldown_seconds: int) -> int:
    """Seconds left before another code may be sent, rounded up; 0 when allowed."""
    if last_sent_at is None:
        return 0
    elapsed_ms = (now - last_sent_at).total_seconds() * 1000
    remaining_ms = cooldown_seconds * 1000 - elapsed_ms
    if remaining_ms <= 0:
        return 0
    return math.ceil(remaining_ms / 1000)


class OTPService:
    """Issue codes by email and verify them against the stored hash."""

    def __init__(
        self,
        store: OTPStore,
        email_sender: EmailSender,
        users: ClientUserStore,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.email_sender = email_sender
        self.users = users
        self.clock = clock
        self.expire_seconds = settings.OTP_EXPIRE_SECONDS
        self.cooldown_seconds = settings.OTP_RESEND_COOLDOWN_SECONDS
        self.max_attempts = settings.OTP_MAX_ATTEMPTS
        self.hasher = OTPHasher(settings.OTP_HASH_ROUNDS)

    async def request_otp(self, email: Any) -> OTPResult[None]:
        """Generate, store and email a fresh code for `email`.

        Subject to the resend cooldown. If delivery fails the stored record
        is removed so a code is never reported as sent when it was not.
        """
        if not email or not isinstance(email, str):
            return OTPResult.failure(OTPErrorKind.INVALID_INPUT, "Email is required")

        email = normalize_email(email)
        if not EMAIL_PATTERN.fullmatch(email):
            return OTPResult.failure(OTPErrorKind.INVALID_INPUT, "Invalid email format")

        try:
            existing = await self.store.find(email)
            now = self.clock()
            if existing is not None:
                wait = remaining_cooldown_seconds(existing.last_sent_at, now, self.cooldown_seconds)
                if wait > 0:
                    logger.info("OTP resend for %s throttled (%ss remaining)", email, wait)
                    return OTPResult.failure(
                        OTPErrorKind.RATE_LIMITED,
                        f"Please wait {wait} seconds before requesting a new OTP",
                        cooldown_seconds=wait,
                    )

            code = generate_otp()
            code_hash = await self.hasher.hash_async(code)
            await self.store.upsert(
                email,
                {
                    "code_hash": code_hash,
                    "expires_at": now + timedelta(seconds=self.expire_seconds),
                    "attempts": 0,
                    "verified": False,
                    "last_sent_at": now,
                },
            )

            try:
                await self.email_sender.send(email, code)
            except Exception as exc:
                logger.error("OTP delivery to %s failed; rolling back record: %s", email, exc)
                await self.store.delete_by_email(email)
                return OTPResult.failure(OTPErrorKind.DELIVERY_FAILED, f"Failed to send OTP email: {exc}")
        except StoreError:
            logger.exception("OTP store failure while sending OTP to %s", email)
            return OTPResult.failure(OTPErrorKind.INTERNAL_ERROR, "Failed to send OTP")

        logger.info("OTP issued for %s", email)
        return OTPResult.success()

    async def verify_otp(self, email: Any, code: Any) -> OTPResult[dict[str, Any]]:
        """Check `code` for `email`; on success mark the client user's email verified."""
        if not email or not isinstance(email, str):
            return OTPResult.failure(OTPErrorKind.INVALID_INPUT, "Email is required")
        if not code or not isinstance(code, str):
            return OTPResult.failure(OTPErrorKind.INVALID_INPUT, "OTP is required")
        if not CODE_PATTERN.fullmatch(code):
            return OTPResult.failure(
                OTPErrorKind.INVALID_INPUT, "Invalid OTP format. OTP must be a 6-digit number"
            )

        email = normalize_email(email)
        try:
            record = await self.store.find(email)
            if record is None:
                return OTPResult.failure(OTPErrorKind.NOT_FOUND, "OTP not found. Please request a new OTP")

            if self.clock() > record.expires_at:
                await self.store.delete(record.id)
                return OTPResult.failure(OTPErrorKind.EXPIRED, "OTP has expired. Please request a new OTP")

            if record.attempts >= self.max_attempts:
                await self.store.delete(record.id)
                return OTPResult.failure(
                    OTPErrorKind.ATTEMPTS_EXHAUSTED,
                    "Maximum verification attempts exceeded. Please request a new OTP",
                )

            if not await self.hasher.verify_async(code, record.code_hash):
                return await self._record_failed_attempt(record)

            return await self._complete_verification(record)
        except StoreError:
            logger.exception("OTP store failure while verifying OTP for %s", email)
            return OTPResult.failure(OTPErrorKind.INTERNAL_ERROR, "Failed to verify OTP")

    async def _record_failed_attempt(self, record: OTPRecord) -> OTPResult[dict[str, Any]]:
        attempts = await self.store.increment_attempts(record.id)
        if attempts == 0:
            # record removed concurrently; count this try against the stale value
            attempts = record.attempts + 1
        remaining = max(0, self.max_attempts - attempts)
        if remaining == 0:
            await self.store.delete(record.id)

        logger.info("Invalid OTP for %s (%s attempt(s) remaining)", record.email, remaining)
        if remaining > 0:
            message = f"Invalid OTP. {remaining} attempt(s) remaining."
        else:
            message = "Invalid OTP. Maximum attempts exceeded."
        return OTPResult.failure(OTPErrorKind.INVALID_CODE, message, remaining_attempts=remaining)

    async def _complete_verification(self, record: OTPRecord) -> OTPResult[dict[str, Any]]:
        await self.store.update(record.id, {"verified": True})

        user = await self.users.find_by_email(record.email)
        if user is None:
            # code stays valid until expiry so the user can register and retry
            return OTPResult.failure(
                OTPErrorKind.USER_NOT_FOUND, "User not found. Please complete registration first"
            )

        user = await self.users.mark_email_verified(user.id)
        await self.store.delete(record.id)

        logger.info("Email verified for client user id=%s", user.id)
        return OTPResult.success({"id": user.id, "email": user.email, "email_verified": user.email_verified})
