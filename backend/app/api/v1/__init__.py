"""
API Version 1 Router.

Combines all API endpoints under /api/v1 prefix.
"""

from fastapi import APIRouter

from app.api.v1.endpoints import realtime

router = APIRouter()

# Include endpoint routers
router.include_router(realtime.router, prefix="/forum", tags=["Forum Realtime"])
