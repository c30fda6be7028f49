"""Client account persistence and registration."""

import logging
import re
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from campus_assistant.db.models import ClientUser
from campus_assistant.schemas.client import ClientRegister
from campus_assistant.stores.base import StoreError

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
USER_TYPES = ("student", "guest", "parent")


class ClientUserStore:
    """Lookups and updates on `client_users` used by the OTP flow."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_email(self, email: str) -> Optional[ClientUser]:
        try:
            return await self.session.scalar(select(ClientUser).where(ClientUser.email == email))
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to load user: {exc}") from exc

    async def mark_email_verified(self, user_id: int) -> ClientUser:
        try:
            await self.session.execute(
                update(ClientUser)
                .where(ClientUser.id == user_id)
                .values(email_verified=True)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
            user = await self.session.scalar(
                select(ClientUser).where(ClientUser.id == user_id).execution_options(populate_existing=True)
            )
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreError(f"Failed to update user: {exc}") from exc
        if user is None:
            raise StoreError(f"User {user_id} disappeared during verification.")
        return user

    async def create(self, *, name: str | None, mobile: str, email: str, user_type: str) -> ClientUser:
        user = ClientUser(name=name, mobile=mobile, email=email, user_type=user_type, email_verified=False)
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        return user


def _duplicate_field(exc: IntegrityError) -> str:
    text = str(exc.orig).lower()
    if "mobile" in text:
        return "mobile number"
    if "email" in text:
        return "email address"
    return "field"


class ClientUserService:
    """Register portal users ahead of email verification."""

    def __init__(self, users: ClientUserStore):
        self.users = users

    async def register(self, payload: ClientRegister) -> tuple[ClientUser, bool]:
        """Create an unverified account, or return the existing one for this email.

        Returns the user and whether it was newly created.
        """
        if not payload.mobile or not payload.email or not payload.user_type:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Missing required fields: mobile, email, userType",
            )

        email = payload.email.strip().lower()
        if not EMAIL_PATTERN.fullmatch(email):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid email format")

        user_type = payload.user_type.strip().lower()
        if user_type not in USER_TYPES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid userType. Must be: student, guest, or parent",
            )

        try:
            existing = await self.users.find_by_email(email)
        except StoreError:
            logger.exception("User lookup failed during registration")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Database connection error. Please try again later.",
            )
        if existing is not None:
            return existing, False

        name = payload.name.strip() if payload.name and payload.name.strip() else None
        try:
            user = await self.users.create(name=name, mobile=payload.mobile.strip(), email=email, user_type=user_type)
        except IntegrityError as exc:
            await self.users.session.rollback()
            field = _duplicate_field(exc)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"This {field} is already registered. Please use a different {field}.",
            )
        except SQLAlchemyError:
            await self.users.session.rollback()
            logger.exception("Failed to register client user %s", email)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to register user",
            )

        logger.info("Registered client user id=%s type=%s", user.id, user.user_type)
        return user, True
