"""Read-through access to production projects.

Reads try the cache first, refetch from the projects API when the cache is
empty or stale, and fall back to whatever is cached when the API is down.
Writes always go to the API first and are then written into the cache.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from errors import UpstreamUnavailableError
from services.project_cache import ProjectCache
from services.project_source import ProjectSource

logger = logging.getLogger(__name__)

# Where a read was answered from; exposed to clients as the X-Cache header
FROM_CACHE = "cache"
FROM_UPSTREAM = "upstream"
FROM_FALLBACK = "fallback"


@dataclass
class ProjectResult:
    data: Any
    source: str


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_project_record(payload: dict) -> dict:
    """Build a new project record; server-managed fields override the payload."""
    now = _utc_now()
    return {
        **payload,
        "id": str(uuid.uuid4()),
        "status": "planning",
        "inventory": [],
        "productionOrders": [],
        "metrics": {
            "completionPercentage": 0,
            "hoursVariance": 0,
            "qualityScore": 100,
            "delayedTasks": 0,
        },
        "documents": [],
        "notes": [],
        "totalActualHours": 0,
        "createdAt": now,
        "updatedAt": now,
    }


class ProjectService:
    def __init__(self, cache: ProjectCache, source: ProjectSource | None, ttl: float | None = None):
        self.cache = cache
        self.source = source
        self.ttl = ttl

    def _require_source(self) -> ProjectSource:
        if self.source is None:
            raise UpstreamUnavailableError("Projects API is not configured")
        return self.source

    async def refresh(self) -> list[dict]:
        """Refetch all projects from upstream and replace the cached snapshot."""
        projects = await self._require_source().fetch_all()
        self.cache.set_all_projects(projects)
        return projects

    async def list_projects(self) -> ProjectResult:
        cached = self.cache.get_all_projects(self.ttl)
        if cached is not None:
            return ProjectResult(cached, FROM_CACHE)

        try:
            projects = await self.refresh()
        except UpstreamUnavailableError as e:
            fallback = self.cache.get_all_projects_fallback()
            if fallback is None:
                raise
            logger.warning("Serving cached projects, upstream unavailable: %s", e)
            return ProjectResult(fallback, FROM_FALLBACK)

        return ProjectResult(projects, FROM_UPSTREAM)

    async def get_project(self, project_id: str) -> ProjectResult:
        cached = self.cache.get_project_by_id(project_id, self.ttl)
        if cached is not None:
            return ProjectResult(cached, FROM_CACHE)

        try:
            project = await self._require_source().fetch_one(project_id)
        except UpstreamUnavailableError as e:
            fallback = self.cache.get_project_by_id_fallback(project_id)
            if fallback is None:
                raise
            logger.warning("Serving cached project %s, upstream unavailable: %s", project_id, e)
            return ProjectResult(fallback, FROM_FALLBACK)

        self.cache.set_project(project)
        return ProjectResult(project, FROM_UPSTREAM)

    async def create_project(self, payload: dict) -> dict:
        source = self._require_source()
        project = await source.save(new_project_record(payload))
        self.cache.set_project(project)
        logger.info("Created project %s", project.get("id"))
        return project

    async def update_project(self, project_id: str, changes: dict) -> dict:
        source = self._require_source()
        existing = await source.fetch_one(project_id)
        updated = {**existing, **changes, "id": project_id, "updatedAt": _utc_now()}
        project = await source.save(updated)
        self.cache.set_project(project)
        logger.info("Updated project %s", project_id)
        return project
