"""Shared fixtures: a controllable clock, sample projects and an in-memory upstream."""

import copy

import pytest

from errors import ProjectNotFoundError, UpstreamUnavailableError
from services.project_cache import ProjectCache


class FakeClock:
    """Callable clock whose time only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSource:
    """In-memory projects API. Set ``down = True`` to simulate an outage."""

    def __init__(self, projects=None):
        self.projects = {p["id"]: copy.deepcopy(p) for p in projects or []}
        self.down = False
        self.calls: list[str] = []

    def _check(self, call: str) -> None:
        self.calls.append(call)
        if self.down:
            raise UpstreamUnavailableError("Projects API unreachable: connection refused")

    async def fetch_all(self) -> list[dict]:
        self._check("fetch_all")
        return [copy.deepcopy(p) for p in self.projects.values()]

    async def fetch_one(self, project_id: str) -> dict:
        self._check(f"fetch_one:{project_id}")
        if project_id not in self.projects:
            raise ProjectNotFoundError(project_id)
        return copy.deepcopy(self.projects[project_id])

    async def save(self, project: dict) -> dict:
        self._check(f"save:{project['id']}")
        self.projects[project["id"]] = copy.deepcopy(project)
        return copy.deepcopy(project)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ProjectCache(clock=clock)


@pytest.fixture
def projects():
    return [
        {"id": "A", "name": "Line 4 retrofit", "status": "active"},
        {"id": "B", "name": "Press shop expansion", "status": "planning"},
    ]


@pytest.fixture
def source(projects):
    return FakeSource(projects)
