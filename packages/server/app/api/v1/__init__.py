"""
API v1 Router

Team-scoped membership routes live under /teams/{teamId}/members.
"""

from fastapi import APIRouter
from . import members, tasks, teams, users

router = APIRouter()

router.include_router(teams.router, prefix="/teams", tags=["Teams"])
router.include_router(members.router, prefix="/teams/{teamId}/members", tags=["Members"])
router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
router.include_router(users.router, prefix="/users", tags=["Users"])


@router.get("/", tags=["API"])
async def api_root():
    """API root — returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/teams",
            "/teams/{teamId}/members",
            "/tasks",
            "/users",
        ],
    }
