"""
Pytest configuration and shared fixtures.

Every test gets its own in-memory SQLite database (aiosqlite) with the schema
created from the ORM metadata, a fake email sender that captures outgoing
codes, and a controllable clock.
"""

import os

# Must be set before campus_assistant is imported: the settings singleton
# reads the environment at import time.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import datetime, timedelta, timezone  # noqa: E402
from typing import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from campus_assistant.core.config import Settings  # noqa: E402
from campus_assistant.db.base import Base  # noqa: E402
from campus_assistant.db.models import ClientUser  # noqa: E402
from campus_assistant.db.session import create_session_factory  # noqa: E402
from campus_assistant.main import create_application  # noqa: E402
from campus_assistant.services.otp import OTPService  # noqa: E402
from campus_assistant.services.users import ClientUserStore  # noqa: E402
from campus_assistant.stores import SQLAlchemyOTPStore  # noqa: E402


class FakeEmailSender:
    """Captures (to, code) pairs instead of talking to SMTP."""

    def __init__(self):
        self.sent: list[tuple[str, str]] = []
        self.error: Exception | None = None

    async def send(self, to_address: str, code: str) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append((to_address, code))

    async def verify_connection(self) -> None:
        return None

    @property
    def last_code(self) -> str:
        return self.sent[-1][1]


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def settings() -> Settings:
    return Settings(ENVIRONMENT="test", OTP_HASH_ROUNDS=4)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def otp_store(session) -> SQLAlchemyOTPStore:
    return SQLAlchemyOTPStore(session)


@pytest.fixture
def otp_service(otp_store, email_sender, session, settings, clock) -> OTPService:
    return OTPService(
        store=otp_store,
        email_sender=email_sender,
        users=ClientUserStore(session),
        settings=settings,
        clock=clock,
    )


async def mk_user(session: AsyncSession, email: str, mobile: str = "9000000001") -> ClientUser:
    user = ClientUser(name="Test User", mobile=mobile, email=email, user_type="student", email_verified=False)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest.fixture
async def client(settings, engine, session_factory, email_sender) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to an app that shares the test database and fake mailer."""
    app = create_application(settings, email_sender=email_sender)
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.redis = None
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
