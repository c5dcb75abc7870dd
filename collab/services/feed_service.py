"""
Project Feed Service - filter then sort project postings for the explore feed.

HOW IT WORKS:
1. Take a snapshot of all projects from MongoDB (no live subscription)
2. Give each project its compatibility score for this viewer
3. Keep projects that pass the active role / stage filters
4. Order the survivors by the selected sort mode

Filtering and sorting are pure functions of their arguments, so the same
inputs always give the same order. The one exception is "trending", which
reads the clock; pass `now_ms` to pin it.

The compatibility score here is a static ranking input assigned per fetch.
It is NOT the generative alignment blurb (see alignment_service).
"""

import logging
import random
import time
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from collab.schemas.schemas import Project, SortMode
from collab.services.mongo_service import ProjectService, clamp_score, project_from_doc

logger = logging.getLogger(__name__)


# ============================================================
# FILTER TAGS
# ============================================================

# Role-need tag -> role names it matches inside a project's missingRoles
ROLE_FILTER_TARGETS: Dict[str, List[str]] = {
    "frontend": ["Frontend Dev", "UI Designer"],
    "backend": ["Backend Dev", "DevOps"],
    "ml": ["ML Engineer", "AI Engineer"],
    "mobile": ["Mobile Dev"],
    "design": ["UI Designer"],
    "fullstack": ["Full Stack Dev"],
}

# Stage tag -> canonical stage label
STAGE_FILTER_LABELS: Dict[str, str] = {
    "ideation": "Ideation",
    "mvp": "MVP",
    "prototype": "Prototype",
    "launched": "Launched",
}

# Trending blend weights
TRENDING_SCORE_WEIGHT = 0.6
TRENDING_RECENCY_WEIGHT = 40


def parse_filter_tags(raw: Optional[str]) -> List[str]:
    """Split a comma-separated query value into tags, keeping order."""
    if not raw:
        return []
    tags = []
    for tag in raw.split(","):
        tag = tag.strip().lower()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def partition_filters(active_filters: Iterable[str]) -> Tuple[List[str], List[str]]:
    """
    Split active tags into (role tags, stage tags).
    Tags in neither mapping are ignored.
    """
    role_tags = []
    stage_tags = []
    for tag in active_filters:
        if tag in ROLE_FILTER_TARGETS:
            role_tags.append(tag)
        elif tag in STAGE_FILTER_LABELS:
            stage_tags.append(tag)
    return role_tags, stage_tags


def matches_role(project: Project, role_tags: List[str]) -> bool:
    """
    True if any active role tag targets a role the project is missing.

    A target matches when it is a case-insensitive substring of a missing
    role ("Frontend Dev" matches "Senior frontend dev"). No role tags means
    every project passes.
    """
    if not role_tags:
        return True

    missing = [role.lower() for role in project.missing_roles]
    for tag in role_tags:
        for target in ROLE_FILTER_TARGETS[tag]:
            target = target.lower()
            if any(target in role for role in missing):
                return True
    return False


def matches_stage(project: Project, stage_tags: List[str]) -> bool:
    """True if the project's stage equals any active stage label (case-insensitive)."""
    if not stage_tags:
        return True
    if not project.stage:
        return False

    stage = project.stage.lower()
    return any(stage == STAGE_FILTER_LABELS[tag].lower() for tag in stage_tags)


def project_matches(project: Project, active_filters: Iterable[str]) -> bool:
    """Role match AND stage match; each family passes when unused."""
    role_tags, stage_tags = partition_filters(active_filters)
    return matches_role(project, role_tags) and matches_stage(project, stage_tags)


def filter_projects(projects: List[Project], active_filters: Iterable[str]) -> List[Project]:
    """Keep projects passing the active filters, preserving input order."""
    role_tags, stage_tags = partition_filters(active_filters)
    if not role_tags and not stage_tags:
        return list(projects)
    return [
        p for p in projects
        if matches_role(p, role_tags) and matches_stage(p, stage_tags)
    ]


# ============================================================
# SORTING
# ============================================================

def trending_score(project: Project, now_ms: int) -> float:
    """Blend of compatibility and recency; now_ms must be fixed for a whole sort."""
    created = project.created_timestamp or 0
    return (
        project.compatibility_score * TRENDING_SCORE_WEIGHT
        + (created / now_ms) * TRENDING_RECENCY_WEIGHT
    )


def sort_key_for(mode: SortMode, now_ms: Optional[int] = None) -> Callable[[Project], float]:
    """
    Build the key function for a sort mode.

    All modes sort descending. For trending, "now" is captured here, once,
    so every comparison in a sort sees the same value.

    Raises:
        ValueError: unknown mode, or a non-positive now_ms for trending
    """
    mode = SortMode(mode)

    if mode == SortMode.match:
        return lambda p: p.compatibility_score
    if mode == SortMode.recent:
        return lambda p: p.created_timestamp or 0

    if now_ms is None:
        now_ms = int(time.time() * 1000)
    elif now_ms <= 0:
        raise ValueError(f"now_ms must be a positive epoch time, got {now_ms}")
    return lambda p: trending_score(p, now_ms)


def sort_projects(projects: List[Project], mode: SortMode, now_ms: Optional[int] = None) -> List[Project]:
    """
    Return a new list ordered by the sort mode, highest first.

    sorted() is stable, also with reverse=True, so equal keys keep their
    input order.
    """
    key = sort_key_for(mode, now_ms)
    return sorted(projects, key=key, reverse=True)


def build_feed(
    projects: List[Project],
    active_filters: Iterable[str],
    sort_mode: SortMode,
    now_ms: Optional[int] = None
) -> List[Project]:
    """
    Feed pipeline: filter, then sort the filtered list.

    Args:
        projects: Current project snapshot (not mutated)
        active_filters: Selected tags; empty means no filtering
        sort_mode: match, recent or trending
        now_ms: Clock for trending (epoch ms); defaults to wall clock

    Returns:
        New ordered list of projects
    """
    filtered = filter_projects(projects, list(active_filters))
    return sort_projects(filtered, sort_mode, now_ms)


# ============================================================
# COMPATIBILITY SCORE (static ranking input)
# ============================================================

def assign_compatibility_score(viewer_id: str, project_id: str) -> int:
    """
    Score in [0, 100] for a (viewer, project) pair.

    Seeded by the pair so a project keeps its place between fetches.
    """
    rng = random.Random(f"{viewer_id}:{project_id}")
    return rng.randint(0, 100)


class FeedService:
    """
    Builds the explore feed for one viewer.

    The viewer is passed in explicitly; nothing here reads ambient state.
    """

    def __init__(self, project_service: ProjectService = None):
        self.project_service = project_service or ProjectService()

    def score_snapshot(self, viewer_id: str, docs: List[dict]) -> List[Project]:
        """Turn project documents into Projects scored for this viewer."""
        projects = []
        for doc in docs:
            if doc.get("compatibilityScore") is not None:
                score = clamp_score(doc["compatibilityScore"])
            else:
                score = assign_compatibility_score(viewer_id, str(doc["_id"]))
            projects.append(project_from_doc(doc, compatibility_score=score))
        return projects

    def get_feed(
        self,
        viewer_id: str,
        active_filters: Iterable[str],
        sort_mode: SortMode,
        include_own: bool = False,
        now_ms: Optional[int] = None
    ) -> List[Project]:
        """
        Fetch a fresh snapshot and run the feed pipeline over it.

        Args:
            viewer_id: uid of the signed-in viewer
            active_filters: Selected filter tags
            sort_mode: Selected sort mode
            include_own: Keep the viewer's own projects in the feed
            now_ms: Clock for trending (tests pin this)
        """
        active_filters = list(active_filters)
        projects = self.score_snapshot(viewer_id, self.project_service.snapshot())
        if not include_own:
            projects = [p for p in projects if p.owner_id != viewer_id]

        feed = build_feed(projects, active_filters, sort_mode, now_ms)
        logger.debug(
            "Feed for %s: %d of %d projects (sort=%s, filters=%s)",
            viewer_id, len(feed), len(projects), SortMode(sort_mode).value, active_filters
        )
        return feed


def get_feed_service() -> FeedService:
    """Get feed service instance."""
    return FeedService()
