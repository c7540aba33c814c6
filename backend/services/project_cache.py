"""Read-through cache for production projects.

Two tiers: the full project collection as one snapshot, and a per-id index
derived from it. Freshness is never stored; every read compares the entry's
age against the caller's max_age. Stale entries are kept so fallback reads
can still answer when the upstream projects API is down.

One instance per process, shared by every request. Sync code may reach it
from FastAPI's thread pool, so all reads and writes of cache state happen
under a single lock.
"""

import logging
import threading
import time
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

DEFAULT_TTL = 5 * 60  # seconds
MAX_ITEMS = 1000  # advisory only, never enforced
STALE_ACCEPTABLE_TIME = 30 * 60  # advisory only, reported in diagnostics


@dataclass
class CacheEntry:
    data: Any
    timestamp: float
    last_accessed: float
    hit_count: int = 0


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    refreshes: int = 0
    fallbacks: int = 0
    size: int = 0
    oldest_entry_age: float = 0.0
    newest_entry_age: float = 0.0
    average_age: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


def get_project_id(project: Any) -> str | None:
    """Return the project's id, or None if it has no usable one."""
    if isinstance(project, Mapping):
        value = project.get("id")
    else:
        value = getattr(project, "id", None)
    if isinstance(value, str) and value:
        return value
    return None


class ProjectCache:
    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        default_ttl: float = DEFAULT_TTL,
        max_items: int = MAX_ITEMS,
    ):
        self._clock = clock
        self.default_ttl = default_ttl
        self.max_items = max_items
        self._lock = threading.Lock()
        self._all: CacheEntry | None = None
        self._by_id: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._refreshes = 0
        self._fallbacks = 0

    def _ttl(self, max_age: float | None) -> float:
        return self.default_ttl if max_age is None else max_age

    def get_all_projects(self, max_age: float | None = None) -> list | None:
        """Return the cached collection if younger than max_age, else None.

        A present-but-stale snapshot still counts as a hit; only a missing
        snapshot counts as a miss.
        """
        max_age = self._ttl(max_age)
        with self._lock:
            entry = self._all
            if entry is None:
                self._misses += 1
                logger.debug("Project cache miss: no cached projects available")
                return None

            now = self._clock()
            age = now - entry.timestamp
            entry.last_accessed = now
            entry.hit_count += 1
            self._hits += 1

            if age < max_age:
                logger.debug("Project cache hit: %d projects (age: %.0fs)", len(entry.data), age)
                return list(entry.data)

        logger.debug("Project cache stale: %.0fs old (TTL: %.0fs)", age, max_age)
        return None

    def get_all_projects_fallback(self) -> list | None:
        """Return the cached collection regardless of age."""
        with self._lock:
            entry = self._all
            if entry is None:
                return None
            self._fallbacks += 1
            age = self._clock() - entry.timestamp
            data = list(entry.data)

        logger.warning("Project cache fallback: returning %d projects (age: %.0fs)", len(data), age)
        return data

    def set_all_projects(self, projects: list | tuple) -> None:
        """Replace the snapshot and (re)index every project with a valid id.

        Index entries for projects missing from the new snapshot are left in
        place until overwritten or the cache is cleared.
        """
        if not isinstance(projects, (list, tuple)):
            logger.warning("Ignoring invalid projects data for cache: %r", type(projects).__name__)
            return

        with self._lock:
            now = self._clock()
            self._refreshes += 1
            self._all = CacheEntry(data=list(projects), timestamp=now, last_accessed=now)
            for project in projects:
                pid = get_project_id(project)
                if pid is not None:
                    self._by_id[pid] = CacheEntry(data=project, timestamp=now, last_accessed=now)

        logger.info("Project cache updated with %d projects", len(projects))

    def get_project_by_id(self, project_id: str, max_age: float | None = None) -> Any | None:
        max_age = self._ttl(max_age)
        with self._lock:
            entry = self._by_id.get(project_id)
            if entry is None:
                self._misses += 1
                logger.debug("Project cache miss: project %s not found", project_id)
                return None

            now = self._clock()
            age = now - entry.timestamp
            entry.last_accessed = now
            entry.hit_count += 1
            self._hits += 1

            if age < max_age:
                logger.debug("Project cache hit: project %s (age: %.0fs)", project_id, age)
                return entry.data

        logger.debug("Project cache stale: project %s is %.0fs old (TTL: %.0fs)", project_id, age, max_age)
        return None

    def get_project_by_id_fallback(self, project_id: str) -> Any | None:
        """Return a project at any age, scanning the snapshot if it isn't indexed."""
        with self._lock:
            entry = self._by_id.get(project_id)
            if entry is not None:
                self._fallbacks += 1
                age = self._clock() - entry.timestamp
                logger.warning("Project cache fallback: project %s (age: %.0fs)", project_id, age)
                return entry.data

            if self._all is not None:
                for project in self._all.data:
                    if get_project_id(project) == project_id:
                        self._fallbacks += 1
                        logger.warning("Project cache fallback from all projects: project %s", project_id)
                        return project

        return None

    def set_project(self, project: Any) -> None:
        """Write one project to the index and patch it into the snapshot.

        The snapshot keeps its original timestamp.
        """
        pid = get_project_id(project)
        if pid is None:
            logger.warning("Ignoring invalid project for cache: missing id")
            return

        with self._lock:
            now = self._clock()
            self._by_id[pid] = CacheEntry(data=project, timestamp=now, last_accessed=now)

            if self._all is not None:
                data = self._all.data
                for index, existing in enumerate(data):
                    if get_project_id(existing) == pid:
                        data[index] = project
                        break
                else:
                    data.append(project)

        logger.info("Project cache updated for project %s", pid)

    def clear_cache(self) -> None:
        """Drop all cached data. Counters are kept."""
        with self._lock:
            self._all = None
            self._by_id.clear()
        logger.info("Project cache cleared")

    def get_stats(self) -> CacheStats:
        with self._lock:
            now = self._clock()
            timestamps = [entry.timestamp for entry in self._by_id.values()]
            if self._all is not None:
                timestamps.append(self._all.timestamp)

            stats = CacheStats(
                hits=self._hits,
                misses=self._misses,
                refreshes=self._refreshes,
                fallbacks=self._fallbacks,
                size=len(timestamps),
            )

        if timestamps:
            stats.oldest_entry_age = now - min(timestamps)
            stats.newest_entry_age = now - max(timestamps)
            stats.average_age = sum(now - ts for ts in timestamps) / len(timestamps)
        return stats
