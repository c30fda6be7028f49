"""HTTP route handlers for sending and verifying email OTPs."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from campus_assistant.api import deps
from campus_assistant.core.results import OTPResult
from campus_assistant.schemas.client import ClientUserSummary
from campus_assistant.schemas.common import Message
from campus_assistant.schemas.otp import OTPSendRequest, OTPVerifyRequest, OTPVerifyResponse
from campus_assistant.services.otp import OTPService

router = APIRouter(prefix="/auth", tags=["authentication"])


def unwrap(result: OTPResult[Any]) -> Any:
    """Return the success value or raise the HTTP error matching the failure kind."""
    if result.error is not None:
        raise HTTPException(status_code=result.error.status_code, detail=result.error.to_detail())
    return result.value


@router.post("/send-otp", response_model=Message)
async def send_otp(
    payload: OTPSendRequest,
    otp_service: OTPService = Depends(deps.get_otp_service),
) -> Message:
    """Email a fresh 6-digit code; the code itself is never returned."""

    unwrap(await otp_service.request_otp(payload.email))
    return Message(message="OTP sent successfully to your email")


@router.post("/verify-otp", response_model=OTPVerifyResponse)
async def verify_otp(
    payload: OTPVerifyRequest,
    otp_service: OTPService = Depends(deps.get_otp_service),
) -> OTPVerifyResponse:
    """Confirm an email address using the submitted OTP code."""

    user = unwrap(await otp_service.verify_otp(payload.email, payload.otp))
    return OTPVerifyResponse(message="Email verified successfully", user=ClientUserSummary(**user))
