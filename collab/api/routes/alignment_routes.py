"""
Alignment Routes

POST /alignment - Get the LLM alignment blurb for a project
GET /alignment/{project_id} - Current alignment state for the viewer
"""

from fastapi import APIRouter, Depends

from collab.core.auth import get_current_user
from collab.services.alignment_service import (
    AlignmentService,
    AlignmentTracker,
    get_alignment_service,
    get_alignment_tracker,
)
from collab.schemas.schemas import (
    AlignmentRequest, AlignmentResponse, AlignmentStateResponse, ErrorResponse
)

router = APIRouter(prefix="/alignment", tags=["Alignment"])


@router.post(
    "",
    response_model=AlignmentResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        408: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def get_alignment(
    request: AlignmentRequest,
    viewer: dict = Depends(get_current_user),
    service: AlignmentService = Depends(get_alignment_service)
):
    """
    Explain how the viewer's profile fits a project.

    Owners get a fixed reply without calling the model. A repeat request
    while one is still running waits for the same result.
    """
    text = await service.align(viewer["uid"], request.project_id)
    return AlignmentResponse(alignment=text)


@router.get("/{project_id}", response_model=AlignmentStateResponse)
async def get_alignment_state(
    project_id: str,
    viewer: dict = Depends(get_current_user),
    tracker: AlignmentTracker = Depends(get_alignment_tracker)
):
    """
    Loading / error / text state for the viewer and project.

    Looking at a project other than the last one resets the viewer's state.
    """
    result = tracker.view(viewer["uid"], project_id)
    return AlignmentStateResponse(project_id=project_id, **result.to_dict())
