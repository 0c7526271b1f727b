"""
Status board API - FastAPI routers and endpoints.

Public dashboard reads are mounted at the API root; operator actions live
under /admin behind the bearer API key.
"""

from fastapi import APIRouter

from .admin import router as admin_router
from .dashboard import router as dashboard_router

# Create main API router (no prefix since it's mounted at /api in main.py)
api_router = APIRouter(tags=["API"])

api_router.include_router(dashboard_router, tags=["Dashboard"])
api_router.include_router(admin_router, prefix="/admin", tags=["Admin"])

__all__ = ["api_router", "admin_router", "dashboard_router"]
