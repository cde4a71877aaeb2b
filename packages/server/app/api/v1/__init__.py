"""
API v1 Router

All endpoints are tenant-scoped by the caller's token.
"""

from fastapi import APIRouter
from . import jobs, notifications

router = APIRouter()

router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
router.include_router(jobs.router, prefix="/jobs", tags=["Jobs"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/notifications",
            "/notifications/unread-count",
            "/jobs/event-status/run",
            "/jobs/due-dates/run",
        ],
    }
