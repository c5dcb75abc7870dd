"""
Schemas module - Pydantic models for stored records and the API contract.
"""
from collab.schemas.schemas import (
    AlignmentRequest,
    AlignmentResponse,
    MeetupStatus,
    Project,
    SortMode,
    UserProfile,
)

__all__ = [
    "AlignmentRequest",
    "AlignmentResponse",
    "MeetupStatus",
    "Project",
    "SortMode",
    "UserProfile",
]
