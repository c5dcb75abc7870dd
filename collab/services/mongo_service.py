"""
MongoDB Service - CRUD operations for document collections.

Collections in this database:
1. users     - Profiles, document _id is the identity-provider uid
2. projects  - Project postings (owner, role gaps, stage, team size)
3. meetups   - Meetup requests from a viewer to a project owner

Documents use camelCase keys, the same keys the API speaks. Every service
takes its collection in the constructor so tests can hand in a fake.
"""

import logging
import re
from datetime import datetime, timezone
from typing import List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection

from collab.db.mongodb import COLLECTIONS, get_collection
from collab.schemas.schemas import (
    MeetupCreate,
    MeetupResponse,
    MeetupStatus,
    ProfileUpdate,
    Project,
    ProjectCreate,
    UserProfile,
)

logger = logging.getLogger(__name__)


# ============================================================
# HELPERS: ids, timestamps, serialization
# ============================================================

def serialize_doc(doc: dict) -> dict:
    """Convert MongoDB document to JSON-serializable dict."""
    if doc is None:
        return None
    if "_id" in doc:
        doc["_id"] = str(doc["_id"])
    return doc


def serialize_docs(docs: list) -> list:
    """Convert list of MongoDB documents to JSON-serializable list."""
    return [serialize_doc(doc) for doc in docs]


def to_object_id(value: str) -> Optional[ObjectId]:
    """Parse a string id; None when it is not a valid ObjectId."""
    # ObjectId(None) would mint a fresh id
    if not value or not ObjectId.is_valid(value):
        return None
    try:
        return ObjectId(value)
    except InvalidId:
        return None


def to_epoch_ms(value: Union[datetime, int, float, None]) -> Optional[int]:
    """
    Convert a stored creation time to epoch milliseconds.

    pymongo hands back naive datetimes that are UTC.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp() * 1000)
    return int(value)


def clamp_score(value) -> int:
    """Coerce a stored score into [0, 100]."""
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, score))


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================
# PROJECTS COLLECTION
# ============================================================

def project_from_doc(doc: dict, compatibility_score: Optional[int] = None) -> Project:
    """
    Build a Project from a stored document.

    Args:
        doc: Raw or serialized projects document
        compatibility_score: Per-fetch score; falls back to the stored one
    """
    if compatibility_score is None:
        compatibility_score = clamp_score(doc.get("compatibilityScore", 0))

    return Project(
        id=str(doc["_id"]),
        owner_id=doc.get("ownerId", ""),
        owner_name=doc.get("ownerName"),
        title=doc.get("title", ""),
        elevator_pitch=doc.get("elevatorPitch") or "",
        missing_roles=list(doc.get("missingRoles") or []),
        tags=list(doc.get("tags") or []),
        stage=doc.get("stage") or None,
        team_size=doc.get("teamSize") or 1,
        max_team_size=doc.get("maxTeamSize") or 1,
        timeline=doc.get("timeline"),
        github_url=doc.get("githubUrl"),
        status=doc.get("status") or "open",
        compatibility_score=compatibility_score,
        created_timestamp=to_epoch_ms(doc.get("createdAt")),
    )


class ProjectService:
    """
    Handles project postings.
    Reads are plain snapshots; the feed is computed from them per request.
    """

    def __init__(self, collection: Collection = None):
        self.collection: Collection = (
            collection if collection is not None else get_collection(COLLECTIONS["projects"])
        )

    def insert(self, owner_id: str, owner_name: Optional[str], data: ProjectCreate) -> Project:
        """
        Insert a new project posting.

        Args:
            owner_id: uid of the creating user (never changes afterwards)
            owner_name: display name captured for cards
            data: Validated create request

        Returns:
            The stored Project
        """
        doc = {
            "ownerId": owner_id,
            "ownerName": owner_name,
            "title": data.title,
            "elevatorPitch": data.elevator_pitch,
            "missingRoles": data.missing_roles,
            "tags": data.tags,
            "stage": data.stage,
            "teamSize": data.team_size,
            "maxTeamSize": data.max_team_size,
            "timeline": data.timeline,
            "githubUrl": data.github_url,
            "status": data.status.value,
            "createdAt": utc_now(),
        }
        result = self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.info("Project %s created by %s", result.inserted_id, owner_id)
        return project_from_doc(doc)

    def get_doc(self, project_id: str) -> Optional[dict]:
        """Fetch a raw project document by id."""
        oid = to_object_id(project_id)
        if oid is None:
            return None
        return serialize_doc(self.collection.find_one({"_id": oid}))

    def get_by_id(self, project_id: str) -> Optional[Project]:
        """Fetch a project by id (None if absent or id is malformed)."""
        doc = self.get_doc(project_id)
        return project_from_doc(doc) if doc else None

    def snapshot(self) -> List[dict]:
        """All project documents, newest first. One read, no subscription."""
        cursor = self.collection.find({}, sort=[("createdAt", DESCENDING)])
        return serialize_docs(list(cursor))

    def list_by_owner(self, owner_id: str) -> List[Project]:
        """Projects created by one user, newest first."""
        cursor = self.collection.find({"ownerId": owner_id}, sort=[("createdAt", DESCENDING)])
        return [project_from_doc(doc) for doc in serialize_docs(list(cursor))]


# ============================================================
# USERS COLLECTION
# Document _id is the uid from the identity provider
# ============================================================

def profile_from_doc(doc: dict) -> UserProfile:
    data = {k: v for k, v in doc.items() if v is not None and k != "_id"}
    data["id"] = str(doc["_id"])
    return UserProfile.model_validate(data)


class UserProfileService:
    """Handles user profiles."""

    def __init__(self, collection: Collection = None):
        self.collection: Collection = (
            collection if collection is not None else get_collection(COLLECTIONS["users"])
        )

    def get(self, uid: str) -> Optional[UserProfile]:
        """Fetch a profile by uid."""
        doc = self.collection.find_one({"_id": uid})
        return profile_from_doc(doc) if doc else None

    def upsert(self, identity: dict, update: ProfileUpdate) -> UserProfile:
        """
        Create or update the signed-in user's profile.

        Only fields present in the update are written. A new profile gets a
        display name from the identity (name, else the email local part).
        """
        uid = identity["uid"]
        fields = update.model_dump(by_alias=True, exclude_none=True)
        fields["updatedAt"] = utc_now()
        if identity.get("email"):
            fields["email"] = identity["email"]

        on_insert = {"createdAt": utc_now()}
        if "name" not in fields:
            email = identity.get("email") or ""
            on_insert["name"] = identity.get("name") or email.split("@")[0] or "User"

        self.collection.update_one(
            {"_id": uid},
            {"$set": fields, "$setOnInsert": on_insert},
            upsert=True
        )
        return self.get(uid)

    def search(self, query: str, exclude_uid: Optional[str] = None, limit: int = 50) -> List[UserProfile]:
        """
        Find people by name, any skill, or department.

        Case-insensitive substring match; an empty query lists everyone.
        The searching user is left out of the results.
        """
        conditions = {}
        query = (query or "").strip()
        if query:
            pattern = {"$regex": re.escape(query), "$options": "i"}
            conditions["$or"] = [
                {"name": pattern},
                {"skills": pattern},
                {"department": pattern},
            ]
        if exclude_uid:
            conditions["_id"] = {"$ne": exclude_uid}

        cursor = self.collection.find(conditions, sort=[("name", ASCENDING)]).limit(limit)
        return [profile_from_doc(doc) for doc in cursor]


# ============================================================
# MEETUPS COLLECTION
# ============================================================

def meetup_from_doc(doc: dict) -> MeetupResponse:
    return MeetupResponse(
        id=str(doc["_id"]),
        project_id=doc["projectId"],
        project_name=doc.get("projectName", ""),
        proposer_uid=doc["proposerUid"],
        proposer_name=doc.get("proposerName") or "User",
        recipient_uid=doc["recipientUid"],
        recipient_name=doc.get("recipientName"),
        campus_spot=doc.get("campusSpot") or "library",
        proposed_time=doc.get("proposedTime"),
        status=doc.get("status", MeetupStatus.pending.value),
        created_at=doc["createdAt"],
    )


class MeetupService:
    """Handles meetup requests between a proposer and a project owner."""

    def __init__(self, collection: Collection = None):
        self.collection: Collection = (
            collection if collection is not None else get_collection(COLLECTIONS["meetups"])
        )

    def insert(self, proposer_uid: str, proposer_name: str, project: Project, data: MeetupCreate) -> MeetupResponse:
        """Store a new pending meetup request addressed to the project owner."""
        now = utc_now()
        doc = {
            "projectId": project.id,
            "projectName": project.title,
            "proposerUid": proposer_uid,
            "proposerName": proposer_name,
            "recipientUid": project.owner_id,
            "recipientName": project.owner_name,
            "campusSpot": data.campus_spot,
            "proposedTime": data.proposed_time or now,
            "status": MeetupStatus.pending.value,
            "createdAt": now,
        }
        result = self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.info("Meetup %s requested by %s for project %s", result.inserted_id, proposer_uid, project.id)
        return meetup_from_doc(doc)

    def get(self, meetup_id: str) -> Optional[MeetupResponse]:
        oid = to_object_id(meetup_id)
        if oid is None:
            return None
        doc = self.collection.find_one({"_id": oid})
        return meetup_from_doc(doc) if doc else None

    def list_for_user(self, uid: str, status: Optional[MeetupStatus] = None) -> List[MeetupResponse]:
        """Meetups the user proposed or received, newest first."""
        query = {"$or": [{"proposerUid": uid}, {"recipientUid": uid}]}
        if status is not None:
            query["status"] = status.value
        cursor = self.collection.find(query, sort=[("createdAt", DESCENDING)])
        return [meetup_from_doc(doc) for doc in cursor]

    def update_status(self, meetup_id: str, status: MeetupStatus) -> bool:
        oid = to_object_id(meetup_id)
        if oid is None:
            return False
        result = self.collection.update_one(
            {"_id": oid},
            {"$set": {"status": status.value, "updatedAt": utc_now()}}
        )
        return result.modified_count > 0


# ============================================================
# CONVENIENCE FUNCTIONS (FastAPI dependencies)
# ============================================================

def get_project_service() -> ProjectService:
    return ProjectService()


def get_profile_service() -> UserProfileService:
    return UserProfileService()


def get_meetup_service() -> MeetupService:
    return MeetupService()
