"""
API v1 Router

Endpoints act on the caller's current organization, resolved from the
database on every request.
"""

from fastapi import APIRouter
from . import auth, member_requests, members, organizations, projects, tasks

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(member_requests.router, prefix="/member-requests", tags=["Member Requests"])
router.include_router(members.router, prefix="/members", tags=["Members"])
router.include_router(organizations.router, prefix="/organizations", tags=["Organizations"])
router.include_router(projects.router, prefix="/projects", tags=["Projects"])
router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/auth",
            "/member-requests",
            "/members",
            "/organizations",
            "/projects",
            "/tasks",
        ],
    }
