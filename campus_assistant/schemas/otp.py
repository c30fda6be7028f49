"""Pydantic schemas for OTP send and verify flows."""

from typing import Any

from pydantic import BaseModel

from campus_assistant.schemas.client import ClientUserSummary
from campus_assistant.schemas.common import Message


class OTPSendRequest(BaseModel):
    """Payload used to request a new OTP for a specific email."""

    email: Any = None


class OTPVerifyRequest(BaseModel):
    """Payload used when submitting a received OTP code for validation."""

    email: Any = None
    otp: Any = None


class OTPVerifyResponse(Message):
    user: ClientUserSummary
