from fastapi import APIRouter

from campus_assistant.api.routes.auth import router as auth_router
from campus_assistant.api.routes.client import router as client_router
from campus_assistant.api.routes.health import router as health_router

api_router = APIRouter(prefix="/api")
api_router.include_router(auth_router)
api_router.include_router(client_router)
api_router.include_router(health_router)

__all__ = ["api_router"]
