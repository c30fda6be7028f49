"""Liveness and database connectivity check."""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from campus_assistant.api import deps
from campus_assistant.core.config import Settings

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


@router.get("/health")
async def health(
    session: AsyncSession = Depends(deps.get_db_session),
    settings: Settings = Depends(deps.get_settings),
) -> JSONResponse:
    """Report database reachability and whether the client user table exists."""
    try:
        await session.execute(text("SELECT 1"))
        connection = await session.connection()
        has_table = await connection.run_sync(lambda sync_conn: inspect(sync_conn).has_table("client_users"))
    except SQLAlchemyError as exc:
        logger.error("Health check failed: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "database": "disconnected", "environment": settings.ENVIRONMENT},
        )

    return JSONResponse(
        content={
            "status": "healthy",
            "database": "connected",
            "tables": {"client_users": "exists" if has_table else "missing"},
            "environment": settings.ENVIRONMENT,
        }
    )
