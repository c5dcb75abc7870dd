"""
User Routes

GET /users/me - Viewer profile
PUT /users/me - Create or update viewer profile
GET /users/search - Find people by name, skill or department
"""

from fastapi import APIRouter, Depends, Query

from collab.core.auth import get_current_user
from collab.core.errors import NotFound
from collab.services.mongo_service import UserProfileService, get_profile_service
from collab.schemas.schemas import PeopleSearchResponse, ProfileUpdate, UserProfile

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserProfile)
async def get_my_profile(
    viewer: dict = Depends(get_current_user),
    profiles: UserProfileService = Depends(get_profile_service)
):
    """Get the signed-in user's profile."""
    profile = profiles.get(viewer["uid"])
    if profile is None:
        raise NotFound("User profile not found")
    return profile


@router.put("/me", response_model=UserProfile)
async def update_my_profile(
    update: ProfileUpdate,
    viewer: dict = Depends(get_current_user),
    profiles: UserProfileService = Depends(get_profile_service)
):
    """
    Create or update the signed-in user's profile.
    Skills, work style and intensity feed the alignment prompt.
    """
    return profiles.upsert(viewer, update)


@router.get(
    "/search",
    response_model=PeopleSearchResponse,
    # Other people's emails stay private
    response_model_exclude={"people": {"__all__": {"email"}}},
)
async def search_people(
    q: str = Query("", max_length=100, description="Part of a name, skill or department"),
    viewer: dict = Depends(get_current_user),
    profiles: UserProfileService = Depends(get_profile_service)
):
    """
    Search other students. Matching is a case-insensitive substring of the
    name, any skill, or the department. An empty query lists everyone.
    """
    query = q.strip()
    people = profiles.search(query, exclude_uid=viewer["uid"])
    return PeopleSearchResponse(people=people, total=len(people), query=query)
