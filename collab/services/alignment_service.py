"""
Alignment Service - short "why you fit this project" blurb from an LLM.

PURPOSE:
Given the signed-in viewer and a project, ask the LLM for two sentences on
how the viewer's profile lines up with what the project needs.

RULES AROUND THE CALL:
- Owners get a canned reply; no LLM call for your own project
- Every profile/project field put into the prompt is sanitized
  (no angle brackets, trimmed, max 200 chars, placeholder when empty)
- Hard deadline on the LLM call (10s by default); expiry is its own error
- The reply is cleaned (no markdown, one line, max 300 chars) and never empty
- One call in flight per (viewer, project); a repeat request joins it

The generated text is independent of the static compatibilityScore used to
rank the feed.
"""

import asyncio
import functools
import logging
import re
from dataclasses import asdict, dataclass
from typing import Awaitable, Callable, Dict, Optional, Tuple

from openai import APITimeoutError, RateLimitError

from collab.core.config import Settings, get_settings
from collab.core.errors import (
    AlignmentTimeout,
    CollabError,
    ConfigurationError,
    ExternalServiceError,
    NotFound,
)
from collab.schemas.schemas import Project, UserProfile
from collab.services.llm_client import LLMClient, get_llm_client
from collab.services.mongo_service import ProjectService, UserProfileService

logger = logging.getLogger(__name__)


OWNER_ALIGNMENT_MESSAGE = "✨ This is your project! You're already perfectly aligned as the owner."
FALLBACK_ALIGNMENT_MESSAGE = "Great potential match! Review the project details to see where your skills align."
FIELD_PLACEHOLDER = "Not specified"

MAX_FIELD_LENGTH = 200
MAX_ALIGNMENT_LENGTH = 300

_ANGLE_BRACKETS = re.compile(r"[<>]")
_MARKDOWN_CHARS = re.compile(r"[*_~`]")
_NEWLINES = re.compile(r"\n+")


# ============================================================
# SANITIZERS
# ============================================================

def sanitize_prompt_field(value: Optional[str], max_length: int = MAX_FIELD_LENGTH) -> str:
    """
    Make a user-authored value safe to drop into the prompt.

    Idempotent: sanitizing twice gives the same string. Output is never
    longer than max_length and never empty.
    """
    if not value:
        return FIELD_PLACEHOLDER
    cleaned = _ANGLE_BRACKETS.sub("", str(value)).strip()
    # Trim again: the cut can land right after a space
    cleaned = cleaned[:max_length].strip()
    return cleaned or FIELD_PLACEHOLDER


def clean_alignment_text(text: Optional[str]) -> str:
    """Strip markdown, flatten to one line, cap length; fall back when empty."""
    if not text:
        return FALLBACK_ALIGNMENT_MESSAGE
    text = _MARKDOWN_CHARS.sub("", text)
    text = _NEWLINES.sub(" ", text).strip()
    text = text[:MAX_ALIGNMENT_LENGTH].strip()
    return text or FALLBACK_ALIGNMENT_MESSAGE


def _join(values) -> str:
    return ", ".join(str(v) for v in values or [])


def build_alignment_prompt(profile: UserProfile, project: Project) -> str:
    """Prompt for one (viewer, project) pair. Every interpolated field is sanitized."""
    timeline = project.timeline.date().isoformat() if project.timeline else ""

    return f"""
You are an expert technical matchmaker for student projects. Judge how well a developer's profile fits a project opportunity. Be concise, specific and encouraging.

DEVELOPER PROFILE:
- Core Skills: {sanitize_prompt_field(_join(profile.skills))}
- Work Style: {sanitize_prompt_field(profile.work_style)}
- Work Intensity: {sanitize_prompt_field(profile.intensity)}
- Academic Background: {sanitize_prompt_field(profile.department)}

PROJECT:
- Title: {sanitize_prompt_field(project.title)}
- Tech Stack: {sanitize_prompt_field(_join(project.tags))}
- Needed Roles: {sanitize_prompt_field(_join(project.missing_roles))}
- Stage: {sanitize_prompt_field(project.stage)}
- Timeline: {sanitize_prompt_field(timeline)}

RULES:
1. Point out 1-2 SPECIFIC matches between the skills and the needed roles or stack
2. Address gaps constructively, naming transferable skills
3. NEVER mention names, emails or other personal details
4. NEVER invent skills that are not in the profile
5. Answer in exactly 2 sentences
6. End on a forward-looking, encouraging note
7. PLAIN TEXT ONLY - no markdown, asterisks or labels

RESPONSE:
"""


# ============================================================
# PER-PAIR STATE (side table, never stored on the Project)
# ============================================================

@dataclass
class AlignmentResult:
    text: str = ""
    is_loading: bool = False
    error: Optional[str] = None
    has_attempted: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


class AlignmentTracker:
    """
    Tracks alignment state and in-flight calls per (viewer, project).

    - A request for a pair that already has a call in flight awaits that call
      instead of starting another one.
    - Each viewer has one "viewed" project. Viewing a different one drops the
      old pair's state; its in-flight call is left to finish and its outcome
      is discarded. Coming back to the pair before that call settles joins
      it again, so a pair never has two calls in flight.
    """

    def __init__(self):
        self._viewing: Dict[str, str] = {}
        self._results: Dict[Tuple[str, str], AlignmentResult] = {}
        self._pending: Dict[Tuple[str, str], asyncio.Future] = {}

    def view(self, viewer_id: str, project_id: str) -> AlignmentResult:
        """Mark project as the viewer's current one and return its state."""
        previous = self._viewing.get(viewer_id)
        if previous != project_id:
            if previous is not None:
                self._results.pop((viewer_id, previous), None)
            self._viewing[viewer_id] = project_id
        return self._results.setdefault((viewer_id, project_id), AlignmentResult())

    def is_pending(self, viewer_id: str, project_id: str) -> bool:
        return (viewer_id, project_id) in self._pending

    async def run(self, viewer_id: str, project_id: str, call: Callable[[], Awaitable[str]]) -> str:
        """
        Run `call` for the pair unless one is already in flight.

        The shared call is shielded: a caller going away does not cancel it
        for the other waiters.
        """
        key = (viewer_id, project_id)
        result = self.view(viewer_id, project_id)

        pending = self._pending.get(key)
        if pending is not None:
            logger.debug("Alignment for %s already in flight, joining", key)
            if not result.is_loading:
                # State was reset by a view change; settle the fresh entry too
                self._start_loading(result)
                pending.add_done_callback(functools.partial(self._settle, key, result))
            return await asyncio.shield(pending)

        self._start_loading(result)
        task = asyncio.ensure_future(call())
        self._pending[key] = task
        # Registered before shield() so state is settled before callers resume
        task.add_done_callback(functools.partial(self._settle, key, result))
        return await asyncio.shield(task)

    @staticmethod
    def _start_loading(result: AlignmentResult) -> None:
        result.is_loading = True
        result.error = None
        result.has_attempted = True

    def _settle(self, key: Tuple[str, str], result: AlignmentResult, task: asyncio.Future) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
        result.is_loading = False

        if task.cancelled():
            result.error = AlignmentTimeout.default_message
            return
        # Always retrieve the exception so asyncio does not log it as unhandled
        exc = task.exception()
        if self._results.get(key) is not result:
            return
        if exc is not None:
            result.error = exc.message if isinstance(exc, CollabError) else ExternalServiceError.default_message
        else:
            result.text = task.result()


# ============================================================
# ALIGNMENT SERVICE
# ============================================================

class AlignmentService:
    """
    Produces the alignment blurb for a viewer and a project.

    Process:
    1. Load viewer profile and project (NotFound if either is missing)
    2. Short-circuit for the project owner
    3. Call the LLM once per pair, under the deadline
    4. Clean the reply
    """

    def __init__(
        self,
        profile_service: UserProfileService = None,
        project_service: ProjectService = None,
        llm_client: LLMClient = None,
        tracker: AlignmentTracker = None,
        settings: Settings = None
    ):
        self.profile_service = profile_service or UserProfileService()
        self.project_service = project_service or ProjectService()
        self._llm_client = llm_client
        self.tracker = tracker or get_alignment_tracker()
        self.settings = settings or get_settings()

    @property
    def llm_client(self) -> LLMClient:
        # Built lazily so a missing key surfaces as ConfigurationError, not at startup
        if self._llm_client is None:
            self._llm_client = get_llm_client()
        return self._llm_client

    async def align(self, viewer_id: str, project_id: str) -> str:
        """
        Get the alignment text for the viewer and project.

        Raises:
            NotFound: profile or project does not exist
            ConfigurationError: no LLM API key
            AlignmentTimeout: LLM did not answer in time
            ExternalServiceError: any other LLM failure
        """
        profile = self.profile_service.get(viewer_id)
        if profile is None:
            logger.info("User profile not found for uid %s", viewer_id)
            raise NotFound("User profile not found")

        project = self.project_service.get_by_id(project_id)
        if project is None:
            raise NotFound("Project not found")

        if project.owner_id == viewer_id:
            return OWNER_ALIGNMENT_MESSAGE

        return await self.tracker.run(
            viewer_id,
            project_id,
            lambda: self._generate(profile, project)
        )

    async def _generate(self, profile: UserProfile, project: Project) -> str:
        if not self.settings.llm_configured:
            logger.error("LLM API key not configured")
            raise ConfigurationError()

        prompt = build_alignment_prompt(profile, project)
        timeout = self.settings.alignment_timeout_seconds

        try:
            raw = await asyncio.wait_for(self.llm_client.complete(prompt), timeout=timeout)
        except (asyncio.TimeoutError, APITimeoutError):
            logger.error("Alignment call timed out after %ss (project %s)", timeout, project.id)
            raise AlignmentTimeout()
        except RateLimitError as e:
            logger.error("Alignment call rate limited: %s", e)
            raise ExternalServiceError("Service busy. Please try again in a minute.") from e
        except Exception as e:
            logger.exception("Error calling LLM for project %s", project.id)
            raise ExternalServiceError() from e

        return clean_alignment_text(raw)


# Singleton tracker (state is per process)
_alignment_tracker: AlignmentTracker = None


def get_alignment_tracker() -> AlignmentTracker:
    """Get or create the alignment tracker (singleton pattern)"""
    global _alignment_tracker
    if _alignment_tracker is None:
        _alignment_tracker = AlignmentTracker()
    return _alignment_tracker


def get_alignment_service() -> AlignmentService:
    """Get alignment service instance."""
    return AlignmentService()
