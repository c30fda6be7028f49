from campus_assistant.schemas.client import ClientRegister, ClientRegisterResponse, ClientUserSummary
from campus_assistant.schemas.common import Message
from campus_assistant.schemas.otp import OTPSendRequest, OTPVerifyRequest, OTPVerifyResponse

__all__ = [
    "ClientRegister",
    "ClientRegisterResponse",
    "ClientUserSummary",
    "Message",
    "OTPSendRequest",
    "OTPVerifyRequest",
    "OTPVerifyResponse",
]
