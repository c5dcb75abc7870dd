"""
Project Routes

GET /projects/feed - Filtered, sorted explore feed
GET /projects/mine - Viewer's own projects
GET /projects/{project_id} - Project details
POST /projects - Create a project posting
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from collab.core.auth import get_current_user
from collab.core.errors import NotFound
from collab.services.feed_service import FeedService, get_feed_service, parse_filter_tags
from collab.services.mongo_service import (
    ProjectService, UserProfileService, get_profile_service, get_project_service
)
from collab.schemas.schemas import (
    FeedResponse, Project, ProjectCreate, ProjectListResponse, SortMode
)

router = APIRouter(prefix="/projects", tags=["Projects"])


@router.get("/feed", response_model=FeedResponse)
async def get_feed(
    sort: SortMode = Query(SortMode.match, description="match, recent or trending"),
    filters: Optional[str] = Query(None, description="Comma-separated filter tags, e.g. frontend,mvp"),
    include_own: bool = Query(False, description="Include projects you created"),
    viewer: dict = Depends(get_current_user),
    service: FeedService = Depends(get_feed_service)
):
    """
    Explore feed.

    Role tags (frontend, backend, ml, mobile, design, fullstack) match any
    missing role; stage tags (ideation, mvp, prototype, launched) match the
    stage. Both families must pass when used. Unknown tags are ignored.
    """
    active_filters = parse_filter_tags(filters)
    projects = service.get_feed(viewer["uid"], active_filters, sort, include_own=include_own)
    return FeedResponse(
        projects=projects,
        total=len(projects),
        sort=sort,
        active_filters=active_filters
    )


@router.get("/mine", response_model=ProjectListResponse)
async def my_projects(
    viewer: dict = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service)
):
    """Projects created by the viewer, newest first."""
    projects = service.list_by_owner(viewer["uid"])
    return ProjectListResponse(projects=projects, total=len(projects))


@router.get("/{project_id}", response_model=Project)
async def get_project(
    project_id: str,
    viewer: dict = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service)
):
    """Get project details."""
    project = service.get_by_id(project_id)
    if project is None:
        raise NotFound("Project not found")
    return project


@router.post("", response_model=Project, status_code=201)
async def create_project(
    data: ProjectCreate,
    viewer: dict = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
    profiles: UserProfileService = Depends(get_profile_service)
):
    """Create a project posting owned by the viewer."""
    profile = profiles.get(viewer["uid"])
    owner_name = profile.name if profile else (viewer.get("name") or "User")
    return service.insert(viewer["uid"], owner_name, data)
