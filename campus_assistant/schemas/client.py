"""Pydantic schemas for client (student/guest/parent) registration."""

from pydantic import BaseModel, ConfigDict, Field

from campus_assistant.schemas.common import Message


class ClientRegister(BaseModel):
    """Registration payload; field validation happens in the service."""

    model_config = ConfigDict(populate_by_name=True)

    name: str | None = None
    mobile: str | None = None
    email: str | None = None
    user_type: str | None = Field(default=None, alias="userType")


class ClientUserSummary(BaseModel):
    """Public view of a client account."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    email: str
    email_verified: bool = Field(alias="emailVerified")


class ClientRegisterResponse(Message):
    user: ClientUserSummary
