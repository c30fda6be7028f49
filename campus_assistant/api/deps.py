"""Dependency providers used by FastAPI endpoints.

These helpers expose database sessions, the OTP store, the email sender and
composed services through FastAPI's dependency injection system so route
handlers remain thin. Long-lived clients are created in the application
lifespan and read from `app.state`; nothing here holds module-level state.
"""

from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from campus_assistant.core.config import Settings
from campus_assistant.db.session import iter_session
from campus_assistant.services.email import EmailSender
from campus_assistant.services.otp import OTPService
from campus_assistant.services.users import ClientUserService, ClientUserStore
from campus_assistant.stores import OTPStore, RedisOTPStore, SQLAlchemyOTPStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async SQLAlchemy session from the application's session factory."""
    async for session in iter_session(request.app.state.session_factory):
        yield session


def get_email_sender(request: Request) -> EmailSender:
    return request.app.state.email_sender


def get_otp_store(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
) -> OTPStore:
    """Pick the OTP record backend configured by `OTP_STORE_BACKEND`."""
    if settings.OTP_STORE_BACKEND == "redis":
        return RedisOTPStore(
            request.app.state.redis,
            ttl_seconds=settings.OTP_EXPIRE_SECONDS + settings.OTP_REDIS_GRACE_SECONDS,
        )
    return SQLAlchemyOTPStore(session)


def get_user_store(session: AsyncSession = Depends(get_db_session)) -> ClientUserStore:
    return ClientUserStore(session)


def get_otp_service(
    store: OTPStore = Depends(get_otp_store),
    email_sender: EmailSender = Depends(get_email_sender),
    users: ClientUserStore = Depends(get_user_store),
    settings: Settings = Depends(get_settings),
) -> OTPService:
    """Assemble OTPService with its record store, mailer and user store.

    The OTP store and the user store share one request-scoped session.
    """
    return OTPService(store=store, email_sender=email_sender, users=users, settings=settings)


def get_client_user_service(users: ClientUserStore = Depends(get_user_store)) -> ClientUserService:
    return ClientUserService(users)
