"""Tests for services.project_service: the read-through caller protocol."""

import pytest

from errors import ProjectNotFoundError, UpstreamUnavailableError
from services.project_service import (
    FROM_CACHE,
    FROM_FALLBACK,
    FROM_UPSTREAM,
    ProjectService,
    new_project_record,
)

TTL = 300


@pytest.fixture
def service(cache, source):
    return ProjectService(cache, source, ttl=TTL)


class TestListProjects:
    @pytest.mark.asyncio
    async def test_miss_then_hit(self, service, source, projects):
        first = await service.list_projects()
        second = await service.list_projects()

        assert first.source == FROM_UPSTREAM
        assert second.source == FROM_CACHE
        assert second.data == projects
        assert source.calls == ["fetch_all"]

    @pytest.mark.asyncio
    async def test_stale_refetches(self, service, source, clock):
        await service.list_projects()
        clock.advance(TTL)
        result = await service.list_projects()
        assert result.source == FROM_UPSTREAM
        assert source.calls == ["fetch_all", "fetch_all"]

    @pytest.mark.asyncio
    async def test_outage_serves_stale_data(self, service, source, cache, clock, projects):
        await service.list_projects()
        clock.advance(TTL * 10)
        source.down = True

        result = await service.list_projects()
        assert result.source == FROM_FALLBACK
        assert result.data == projects
        assert cache.get_stats().fallbacks == 1

    @pytest.mark.asyncio
    async def test_outage_with_nothing_cached(self, service, source):
        source.down = True
        with pytest.raises(UpstreamUnavailableError):
            await service.list_projects()

    @pytest.mark.asyncio
    async def test_no_source_configured(self, cache):
        service = ProjectService(cache, None)
        with pytest.raises(UpstreamUnavailableError):
            await service.list_projects()


class TestGetProject:
    @pytest.mark.asyncio
    async def test_served_from_collection_index(self, service, source, projects):
        await service.list_projects()
        result = await service.get_project("B")
        assert result.source == FROM_CACHE
        assert result.data == projects[1]
        assert source.calls == ["fetch_all"]

    @pytest.mark.asyncio
    async def test_miss_fetches_and_caches(self, service, source, cache, projects):
        result = await service.get_project("A")
        assert result.source == FROM_UPSTREAM
        assert cache.get_project_by_id("A") == projects[0]

    @pytest.mark.asyncio
    async def test_outage_falls_back(self, service, source, clock, projects):
        await service.list_projects()
        clock.advance(TTL + 1)
        source.down = True

        result = await service.get_project("A")
        assert result.source == FROM_FALLBACK
        assert result.data == projects[0]

    @pytest.mark.asyncio
    async def test_not_found_is_not_masked(self, service, cache):
        cache.set_all_projects([{"id": "Z", "name": "deleted upstream"}])
        cache._by_id.clear()
        with pytest.raises(ProjectNotFoundError):
            await service.get_project("Z")


class TestWrites:
    @pytest.mark.asyncio
    async def test_create_project(self, service, source, cache, projects):
        await service.list_projects()
        created = await service.create_project({"name": "Paint line", "status": "active", "id": "mine"})

        assert created["id"] != "mine"
        assert created["status"] == "planning"
        assert created["name"] == "Paint line"
        assert created["id"] in source.projects
        assert cache.get_project_by_id(created["id"]) == created
        assert len((await service.list_projects()).data) == len(projects) + 1

    @pytest.mark.asyncio
    async def test_update_project(self, service, source, cache):
        await service.list_projects()
        updated = await service.update_project("A", {"status": "complete", "id": "other"})

        assert updated["id"] == "A"
        assert updated["status"] == "complete"
        assert updated["name"] == "Line 4 retrofit"
        assert "updatedAt" in updated

        result = await service.list_projects()
        assert result.source == FROM_CACHE
        assert result.data[0]["status"] == "complete"

    @pytest.mark.asyncio
    async def test_update_missing_project(self, service):
        with pytest.raises(ProjectNotFoundError):
            await service.update_project("Z", {"status": "complete"})

    @pytest.mark.asyncio
    async def test_writes_do_not_fall_back(self, service, source, cache):
        await service.list_projects()
        source.down = True
        with pytest.raises(UpstreamUnavailableError):
            await service.update_project("A", {"status": "complete"})
        assert cache.get_project_by_id("A")["status"] == "active"

    @pytest.mark.asyncio
    async def test_refresh(self, service, source, cache):
        source.projects["C"] = {"id": "C"}
        refreshed = await service.refresh()
        assert len(refreshed) == 3
        assert cache.get_stats().refreshes == 1


def test_new_project_record_defaults():
    record = new_project_record({"name": "Paint line", "metrics": {"qualityScore": 1}})
    assert record["name"] == "Paint line"
    assert record["metrics"] == {
        "completionPercentage": 0,
        "hoursVariance": 0,
        "qualityScore": 100,
        "delayedTasks": 0,
    }
    assert record["inventory"] == record["productionOrders"] == record["documents"] == record["notes"] == []
    assert record["createdAt"] == record["updatedAt"]
