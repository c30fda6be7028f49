"""Application entrypoint for the campus assistant OTP service.

This module wires together the FastAPI application with its lifespan hooks,
database metadata, optional Redis client, and CORS configuration.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.asyncio import Redis

from campus_assistant.api.routes import api_router
from campus_assistant.core.config import Settings, get_settings
from campus_assistant.core.logging import setup_logging
from campus_assistant.db import models  # noqa: F401
from campus_assistant.db.base import Base
from campus_assistant.db.session import create_engine, create_session_factory
from campus_assistant.services.email import EmailSender, build_email_sender

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create database tables on startup and dispose shared clients on shutdown.

    The engine is created here unless a test has already placed one on
    `app.state`. The Redis client only exists when OTP records live in Redis.
    """
    settings: Settings = app.state.settings
    if getattr(app.state, "engine", None) is None:
        app.state.engine = create_engine(settings)
        app.state.session_factory = create_session_factory(app.state.engine)

    async with app.state.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    app.state.redis = None
    if settings.OTP_STORE_BACKEND == "redis":
        app.state.redis = Redis.from_url(settings.REDIS_URL, decode_responses=True)

    logger.info("%s started (otp store: %s)", settings.PROJECT_NAME, settings.OTP_STORE_BACKEND)
    yield

    if app.state.redis is not None:
        await app.state.redis.aclose()
    await app.state.engine.dispose()


def create_application(settings: Settings | None = None, email_sender: EmailSender | None = None) -> FastAPI:
    """Assemble and configure the FastAPI application instance.

    - Attaches settings and the email sender to `app.state` for dependencies.
    - Applies CORS settings sourced from environment-driven `settings`.
    - Registers the `/api` routers for OTP, registration and health.
    """
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)

    application = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.PROJECT_VERSION,
        lifespan=lifespan,
    )
    application.state.settings = settings
    application.state.email_sender = email_sender or build_email_sender(settings)
    application.state.engine = None

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(api_router)

    @application.get("/")
    async def root():
        """Lightweight endpoint used by uptime monitors."""
        return {"message": f"{settings.PROJECT_NAME} is running!"}

    return application


app = create_application()
