"""Pytest fixtures for Campus Collab tests."""
import asyncio
import re
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from jose import jwt

from collab.core import auth
from collab.core.config import Settings
from collab.services.alignment_service import (
    AlignmentService,
    AlignmentTracker,
    get_alignment_service,
    get_alignment_tracker,
)
from collab.services.feed_service import FeedService, get_feed_service
from collab.services.mongo_service import (
    MeetupService,
    ProjectService,
    UserProfileService,
    get_meetup_service,
    get_profile_service,
    get_project_service,
)


# =============================================================================
# IN-MEMORY STORE
# =============================================================================


class FakeCursor(list):

    def limit(self, n):
        return FakeCursor(self[:n]) if n else self


class FakeCollection:
    """The slice of pymongo's Collection API the services use."""

    def __init__(self, docs=None):
        self.docs = [dict(d) for d in docs or []]

    def _matches_regex(self, value, cond):
        flags = re.IGNORECASE if "i" in cond.get("$options", "") else 0
        values = value if isinstance(value, list) else [value]
        return any(isinstance(v, str) and re.search(cond["$regex"], v, flags) for v in values)

    def _matches(self, doc, query):
        for key, cond in query.items():
            if key == "$or":
                if not any(self._matches(doc, q) for q in cond):
                    return False
            elif isinstance(cond, dict) and "$regex" in cond:
                if not self._matches_regex(doc.get(key), cond):
                    return False
            elif isinstance(cond, dict) and "$ne" in cond:
                if doc.get(key) == cond["$ne"]:
                    return False
            elif doc.get(key) != cond:
                return False
        return True

    def find(self, query=None, sort=None):
        results = [dict(d) for d in self.docs if self._matches(d, query or {})]
        for key, direction in reversed(sort or []):
            results.sort(key=lambda d: d.get(key), reverse=direction < 0)
        return FakeCursor(results)

    def find_one(self, query=None, sort=None):
        results = self.find(query, sort)
        return results[0] if results else None

    def insert_one(self, doc):
        doc.setdefault("_id", ObjectId())
        self.docs.append(dict(doc))
        return SimpleNamespace(inserted_id=doc["_id"])

    def update_one(self, query, update, upsert=False):
        for doc in self.docs:
            if self._matches(doc, query):
                before = dict(doc)
                doc.update(update.get("$set", {}))
                return SimpleNamespace(
                    matched_count=1, modified_count=int(before != doc), upserted_id=None
                )

        if not upsert:
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)

        doc = {k: v for k, v in query.items() if not k.startswith("$")}
        doc.update(update.get("$setOnInsert", {}))
        doc.update(update.get("$set", {}))
        doc.setdefault("_id", ObjectId())
        self.docs.append(doc)
        return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=doc["_id"])


class FakeLLM:
    """Stands in for LLMClient; records every prompt it receives."""

    def __init__(self, reply="Your React skills match their frontend gap. Jump in!", delay=0.0, error=None):
        self.reply = reply
        self.delay = delay
        self.error = error
        self.calls = []

    async def complete(self, prompt, max_tokens=None):
        self.calls.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply


def ms_to_datetime(ms):
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def project_doc(owner_id="owner-1", **overrides):
    """A projects document as stored in MongoDB."""
    doc = {
        "_id": ObjectId(),
        "ownerId": owner_id,
        "ownerName": "Pragya Sharma",
        "title": "EcoTrack",
        "elevatorPitch": "Gamified carbon footprint tracking.",
        "missingRoles": ["Frontend Dev", "UI Designer"],
        "tags": ["React Native", "Firebase"],
        "stage": "Ideation",
        "teamSize": 2,
        "maxTeamSize": 5,
        "status": "open",
        "createdAt": datetime(2025, 3, 1, tzinfo=timezone.utc),
    }
    doc.update(overrides)
    return doc


def profile_doc(uid="viewer-1", **overrides):
    doc = {
        "_id": uid,
        "name": "Chirag",
        "email": f"{uid}@iiits.in",
        "department": "Computer Science",
        "skills": ["React", "TypeScript"],
        "workStyle": "Async",
        "intensity": "10 hrs/week",
    }
    doc.update(overrides)
    return doc


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def stores():
    return {
        "users": FakeCollection([profile_doc("viewer-1"), profile_doc("owner-1", name="Pragya Sharma")]),
        "projects": FakeCollection(),
        "meetups": FakeCollection(),
    }


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def tracker():
    return AlignmentTracker()


@pytest.fixture
def llm_settings():
    return Settings(llm_api_key="test-key", alignment_timeout_seconds=0.2)


@pytest.fixture
def alignment_service(stores, fake_llm, tracker, llm_settings):
    return AlignmentService(
        profile_service=UserProfileService(stores["users"]),
        project_service=ProjectService(stores["projects"]),
        llm_client=fake_llm,
        tracker=tracker,
        settings=llm_settings,
    )


def make_token(uid="viewer-1", email=None, expires_in=timedelta(hours=1), **claims):
    payload = {
        "sub": uid,
        "email": email or f"{uid}@iiits.in",
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    payload.update(claims)
    return jwt.encode(payload, auth.settings.jwt_secret_key, algorithm=auth.settings.jwt_algorithm)


def auth_headers(uid="viewer-1", **kwargs):
    return {"Authorization": f"Bearer {make_token(uid, **kwargs)}"}


@pytest.fixture
def client(stores, alignment_service, tracker):
    """TestClient with every store and the LLM replaced by fakes."""
    from collab.main import app

    app.dependency_overrides[get_project_service] = lambda: ProjectService(stores["projects"])
    app.dependency_overrides[get_profile_service] = lambda: UserProfileService(stores["users"])
    app.dependency_overrides[get_meetup_service] = lambda: MeetupService(stores["meetups"])
    app.dependency_overrides[get_feed_service] = lambda: FeedService(ProjectService(stores["projects"]))
    app.dependency_overrides[get_alignment_service] = lambda: alignment_service
    app.dependency_overrides[get_alignment_tracker] = lambda: tracker

    yield TestClient(app)

    app.dependency_overrides.clear()
