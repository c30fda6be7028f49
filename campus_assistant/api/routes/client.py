"""Client (student/guest/parent) registration endpoint."""

from fastapi import APIRouter, Depends, Response, status

from campus_assistant.api import deps
from campus_assistant.schemas.client import ClientRegister, ClientRegisterResponse, ClientUserSummary
from campus_assistant.services.users import ClientUserService

router = APIRouter(prefix="/client", tags=["client"])


@router.post("/register", response_model=ClientRegisterResponse, status_code=status.HTTP_201_CREATED)
async def register_client(
    payload: ClientRegister,
    response: Response,
    user_service: ClientUserService = Depends(deps.get_client_user_service),
) -> ClientRegisterResponse:
    """Create an unverified account; repeat registrations return the existing user with 200."""

    user, created = await user_service.register(payload)
    summary = ClientUserSummary(id=user.id, email=user.email, email_verified=user.email_verified)
    if not created:
        response.status_code = status.HTTP_200_OK
        return ClientRegisterResponse(message="User already registered", user=summary)
    return ClientRegisterResponse(
        message="User registered successfully. Please verify your email with the OTP sent to your inbox.",
        user=summary,
    )
