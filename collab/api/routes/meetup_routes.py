"""
Meetup Routes

POST /meetups - Request a meetup with a project's owner
GET /meetups - Meetups you proposed or received
PUT /meetups/{meetup_id}/status - Accept / decline / complete (recipient only)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from collab.core.auth import get_current_user
from collab.core.errors import Forbidden, InvalidRequest, NotFound
from collab.services.mongo_service import (
    MeetupService, ProjectService, UserProfileService,
    get_meetup_service, get_profile_service, get_project_service
)
from collab.schemas.schemas import (
    MeetupCreate, MeetupListResponse, MeetupResponse, MeetupStatus, MeetupStatusUpdate
)

router = APIRouter(prefix="/meetups", tags=["Meetups"])

# current status -> statuses the recipient may move it to
ALLOWED_TRANSITIONS = {
    MeetupStatus.pending: {MeetupStatus.accepted, MeetupStatus.declined},
    MeetupStatus.accepted: {MeetupStatus.completed},
    MeetupStatus.declined: set(),
    MeetupStatus.completed: set(),
}


@router.post("", response_model=MeetupResponse, status_code=201)
async def request_meetup(
    data: MeetupCreate,
    viewer: dict = Depends(get_current_user),
    meetups: MeetupService = Depends(get_meetup_service),
    projects: ProjectService = Depends(get_project_service),
    profiles: UserProfileService = Depends(get_profile_service)
):
    """Ask a project's owner to meet up. The request starts as pending."""
    project = projects.get_by_id(data.project_id)
    if project is None:
        raise NotFound("Project not found")

    if project.owner_id == viewer["uid"]:
        raise InvalidRequest("You cannot request a meetup on your own project")

    profile = profiles.get(viewer["uid"])
    proposer_name = profile.name if profile else (viewer.get("name") or "User")

    return meetups.insert(viewer["uid"], proposer_name, project, data)


@router.get("", response_model=MeetupListResponse)
async def list_meetups(
    status: Optional[MeetupStatus] = Query(None, description="Only meetups in this status"),
    viewer: dict = Depends(get_current_user),
    meetups: MeetupService = Depends(get_meetup_service)
):
    """Meetups where the viewer is the proposer or the recipient."""
    results = meetups.list_for_user(viewer["uid"], status)
    return MeetupListResponse(meetups=results, total=len(results))


@router.put("/{meetup_id}/status", response_model=MeetupResponse)
async def update_meetup_status(
    meetup_id: str,
    update: MeetupStatusUpdate,
    viewer: dict = Depends(get_current_user),
    meetups: MeetupService = Depends(get_meetup_service)
):
    """Move a meetup along; only the project owner who received it can."""
    meetup = meetups.get(meetup_id)
    if meetup is None:
        raise NotFound("Meetup not found")

    if meetup.recipient_uid != viewer["uid"]:
        raise Forbidden("Only the recipient can update this meetup")

    if update.status not in ALLOWED_TRANSITIONS[meetup.status]:
        raise InvalidRequest(
            f"Cannot change meetup from {meetup.status.value} to {update.status.value}"
        )

    meetups.update_status(meetup_id, update.status)
    return meetups.get(meetup_id)
