"""
API v1 router aggregation.

WHAT: Combine all v1 endpoint routers
WHY: Single place to register all API routes
HOW: Include routers from endpoints with prefixes
"""

from fastapi import APIRouter

from .endpoints import chat, sessions, webhooks

# Create main v1 router
api_router = APIRouter()

# Include endpoint routers
api_router.include_router(
    chat.router,
    prefix="/api/v1",
    tags=["chat"]
)

api_router.include_router(
    sessions.router,
    prefix="/api/v1",
    tags=["sessions"]
)

api_router.include_router(
    webhooks.router,
    prefix="/api/v1",
    tags=["webhooks"]
)
