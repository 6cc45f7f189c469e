from fastapi import APIRouter

from .endpoints import chat
from .endpoints import health
from .endpoints import notifications

api_router = APIRouter()

# Include endpoint routers
api_router.include_router(health.router, prefix="", tags=["health"])
api_router.include_router(chat.router, prefix="", tags=["relay"])
api_router.include_router(notifications.router, prefix="", tags=["notifications"])
