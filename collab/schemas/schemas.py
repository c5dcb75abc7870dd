"""
Pydantic Schemas - Domain records and Request/Response Validation

All schemas in one file for simplicity. JSON uses camelCase keys
(elevatorPitch, missingRoles, projectId, ...); Python code uses snake_case.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


# ============================================================
# ENUMS
# ============================================================

class SortMode(str, Enum):
    match = "match"
    recent = "recent"
    trending = "trending"


class ProjectStatus(str, Enum):
    open = "open"
    in_progress = "in-progress"
    completed = "completed"


class MeetupStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    declined = "declined"
    completed = "completed"


# Labels offered by the create form; stored stage is still free text
PROJECT_STAGES = [
    "Ideation",
    "Design/Research",
    "Prototype",
    "MVP",
    "Pilot/Scaling",
    "Launched",
]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _clean_string_list(values: List[str]) -> List[str]:
    """Trim entries, drop blanks and case-insensitive duplicates (first wins)."""
    cleaned = []
    seen = set()
    for value in values:
        value = str(value).strip()
        if value and value.lower() not in seen:
            seen.add(value.lower())
            cleaned.append(value)
    return cleaned


# ============================================================
# PROJECT SCHEMAS
# ============================================================

class Project(CamelModel):
    id: str
    owner_id: str
    owner_name: Optional[str] = None
    title: str
    elevator_pitch: str = ""
    missing_roles: List[str] = []
    tags: List[str] = []
    stage: Optional[str] = None
    team_size: int = 1
    max_team_size: int = 1
    timeline: Optional[datetime] = None
    github_url: Optional[str] = None
    status: str = ProjectStatus.open.value
    compatibility_score: int = Field(0, ge=0, le=100)
    created_timestamp: Optional[int] = None


class ProjectCreate(CamelModel):
    title: str = Field(..., min_length=3, max_length=200)
    elevator_pitch: str = Field(..., min_length=1, max_length=2000)
    missing_roles: List[str] = Field(..., min_length=1)
    tags: List[str] = Field(..., min_length=1)
    stage: Optional[str] = PROJECT_STAGES[0]
    team_size: int = Field(1, ge=1)
    max_team_size: int = Field(3, ge=1)
    timeline: Optional[datetime] = None
    github_url: Optional[str] = None
    status: ProjectStatus = ProjectStatus.open

    @field_validator("title", "elevator_pitch")
    @classmethod
    def strip_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("missing_roles", "tags")
    @classmethod
    def clean_lists(cls, values: List[str]) -> List[str]:
        cleaned = _clean_string_list(values)
        if not cleaned:
            raise ValueError("at least one entry is required")
        return cleaned

    @field_validator("github_url")
    @classmethod
    def blank_url_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None

    @model_validator(mode="after")
    def check_team_size(self):
        if self.team_size > self.max_team_size:
            raise ValueError("teamSize cannot exceed maxTeamSize")
        return self


class FeedResponse(CamelModel):
    projects: List[Project]
    total: int
    sort: SortMode
    active_filters: List[str] = []


class ProjectListResponse(CamelModel):
    projects: List[Project]
    total: int


# ============================================================
# USER PROFILE SCHEMAS
# ============================================================

class UserProfile(CamelModel):
    id: str
    name: str = "User"
    email: Optional[str] = None
    department: Optional[str] = None
    year: Optional[str] = None
    bio: Optional[str] = None
    skills: List[str] = []
    interests: List[str] = []
    looking_for: List[str] = []
    work_style: Optional[str] = None
    intensity: Optional[str] = None
    github: Optional[str] = None
    linkedin: Optional[str] = None
    portfolio: Optional[str] = None


class ProfileUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    department: Optional[str] = None
    year: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=1000)
    skills: Optional[List[str]] = None
    interests: Optional[List[str]] = None
    looking_for: Optional[List[str]] = None
    work_style: Optional[str] = None
    intensity: Optional[str] = None
    github: Optional[str] = None
    linkedin: Optional[str] = None
    portfolio: Optional[str] = None

    @field_validator("skills", "interests", "looking_for")
    @classmethod
    def clean_lists(cls, values: Optional[List[str]]) -> Optional[List[str]]:
        if values is None:
            return None
        return _clean_string_list(values)


class PeopleSearchResponse(CamelModel):
    people: List[UserProfile]
    total: int
    query: str = ""


class IdentityResponse(BaseModel):
    uid: str
    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None


# ============================================================
# ALIGNMENT SCHEMAS
# ============================================================

class AlignmentRequest(CamelModel):
    project_id: str

    @field_validator("project_id")
    @classmethod
    def non_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Invalid project ID")
        return value


class AlignmentResponse(BaseModel):
    alignment: str


class AlignmentStateResponse(CamelModel):
    project_id: str
    text: str = ""
    is_loading: bool = False
    error: Optional[str] = None
    has_attempted: bool = False


# ============================================================
# MEETUP SCHEMAS
# ============================================================

class MeetupCreate(CamelModel):
    project_id: str = Field(..., min_length=1)
    campus_spot: str = Field("library", min_length=1, max_length=100)
    proposed_time: Optional[datetime] = None


class MeetupStatusUpdate(CamelModel):
    status: MeetupStatus


class MeetupResponse(CamelModel):
    id: str
    project_id: str
    project_name: str
    proposer_uid: str
    proposer_name: str
    recipient_uid: str
    recipient_name: Optional[str] = None
    campus_spot: str
    proposed_time: Optional[datetime] = None
    status: MeetupStatus
    created_at: datetime


class MeetupListResponse(CamelModel):
    meetups: List[MeetupResponse]
    total: int


# ============================================================
# GENERIC SCHEMAS
# ============================================================

class ErrorResponse(BaseModel):
    error: str
    code: str
    retryable: bool = False
