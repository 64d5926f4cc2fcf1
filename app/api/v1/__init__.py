"""
API v1 Router

Resource endpoints are mounted under /api/v1. Authentication lives at /auth
and the mail relay at /api/notify (see app.main).
"""

from fastapi import APIRouter
from . import payments, profiles, projects, uploads

router = APIRouter()

router.include_router(profiles.router, prefix="/profiles", tags=["Profiles"])
router.include_router(projects.router, prefix="/projects", tags=["Projects"])
router.include_router(payments.router, prefix="/payments", tags=["Payments"])
router.include_router(uploads.router, prefix="/uploads", tags=["Uploads"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/profiles",
            "/projects",
            "/payments",
            "/uploads",
        ],
    }
