"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from collab.api.routes.auth_routes import router as auth_router
from collab.api.routes.user_routes import router as user_router
from collab.api.routes.project_routes import router as project_router
from collab.api.routes.alignment_routes import router as alignment_router
from collab.api.routes.meetup_routes import router as meetup_router

# Main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(auth_router)
api_router.include_router(user_router)
api_router.include_router(project_router)
api_router.include_router(alignment_router)
api_router.include_router(meetup_router)
