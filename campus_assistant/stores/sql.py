"""OTP record store backed by the relational database."""

import logging
from typing import Any, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from campus_assistant.db.models import EmailOTP
from campus_assistant.stores.base import OTPRecord, RecordId, StoreError, as_utc

logger = logging.getLogger(__name__)

_DIALECT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def _to_columns(fields: dict[str, Any]) -> dict[str, Any]:
    columns = dict(fields)
    if "code_hash" in columns:
        columns["otp_hash"] = columns.pop("code_hash")
    return columns


def _to_record(row: EmailOTP) -> OTPRecord:
    return OTPRecord(
        id=row.id,
        email=row.email,
        code_hash=row.otp_hash,
        expires_at=as_utc(row.expires_at),
        attempts=row.attempts,
        verified=row.verified,
        last_sent_at=as_utc(row.last_sent_at),
    )


class SQLAlchemyOTPStore:
    """Persist OTP records in the `email_otps` table; every write commits immediately."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find(self, email: str) -> Optional[OTPRecord]:
        stmt = (
            select(EmailOTP)
            .where(EmailOTP.email == email)
            .order_by(EmailOTP.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        try:
            row = await self.session.scalar(stmt)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to load OTP record: {exc}") from exc
        return _to_record(row) if row is not None else None

    async def upsert(self, email: str, fields: dict[str, Any]) -> OTPRecord:
        """Insert or overwrite the record for `email` in one statement where the dialect allows it."""
        columns = _to_columns(fields)
        try:
            insert = _DIALECT_INSERTS.get(self.session.get_bind().dialect.name)
            if insert is not None:
                stmt = insert(EmailOTP).values(email=email, **columns)
                stmt = stmt.on_conflict_do_update(index_elements=[EmailOTP.email], set_=columns)
                await self.session.execute(stmt)
            else:
                existing = await self.session.scalar(select(EmailOTP).where(EmailOTP.email == email))
                if existing is None:
                    self.session.add(EmailOTP(email=email, **columns))
                else:
                    for key, value in columns.items():
                        setattr(existing, key, value)
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreError(f"Failed to save OTP record: {exc}") from exc

        record = await self.find(email)
        if record is None:
            raise StoreError("OTP record vanished after upsert.")
        return record

    async def update(self, record_id: RecordId, fields: dict[str, Any]) -> None:
        stmt = (
            update(EmailOTP)
            .where(EmailOTP.id == record_id)
            .values(**_to_columns(fields))
            .execution_options(synchronize_session=False)
        )
        await self._execute_and_commit(stmt, "update")

    async def increment_attempts(self, record_id: RecordId) -> int:
        """Atomically add one failed attempt and return the new count (0 if the record is gone)."""
        stmt = (
            update(EmailOTP)
            .where(EmailOTP.id == record_id)
            .values(attempts=EmailOTP.attempts + 1)
            .returning(EmailOTP.attempts)
            .execution_options(synchronize_session=False)
        )
        try:
            attempts = (await self.session.execute(stmt)).scalar_one_or_none()
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreError(f"Failed to record OTP attempt: {exc}") from exc
        return attempts or 0

    async def delete(self, record_id: RecordId) -> None:
        stmt = delete(EmailOTP).where(EmailOTP.id == record_id).execution_options(synchronize_session=False)
        await self._execute_and_commit(stmt, "delete")

    async def delete_by_email(self, email: str) -> None:
        stmt = delete(EmailOTP).where(EmailOTP.email == email).execution_options(synchronize_session=False)
        await self._execute_and_commit(stmt, "delete")

    async def _execute_and_commit(self, stmt, action: str) -> None:
        try:
            await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.debug("OTP store %s failed", action, exc_info=True)
            raise StoreError(f"Failed to {action} OTP record: {exc}") from exc
