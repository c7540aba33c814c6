"""Project routes: read-through cached access to the projects API."""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Request, Response

from services.project_cache import ProjectCache
from services.project_service import ProjectService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_project_service(request: Request) -> ProjectService:
    return request.app.state.project_service


def get_project_cache(request: Request) -> ProjectCache:
    return request.app.state.project_cache


@router.get("/projects")
async def list_projects(
    response: Response,
    service: ProjectService = Depends(get_project_service),
) -> list[Any]:
    """All projects, served from cache while fresh."""
    result = await service.list_projects()
    response.headers["X-Cache"] = result.source
    return result.data


@router.post("/projects/cache/refresh")
async def refresh_projects(service: ProjectService = Depends(get_project_service)) -> dict:
    """Force a refetch of all projects from upstream."""
    projects = await service.refresh()
    return {"refreshed": len(projects)}


@router.delete("/projects/cache", status_code=204)
async def clear_project_cache(cache: ProjectCache = Depends(get_project_cache)) -> Response:
    cache.clear_cache()
    return Response(status_code=204)


@router.get("/projects/{project_id}")
async def get_project(
    project_id: str,
    response: Response,
    service: ProjectService = Depends(get_project_service),
) -> Any:
    result = await service.get_project(project_id)
    response.headers["X-Cache"] = result.source
    return result.data


@router.post("/projects", status_code=201)
async def create_project(
    payload: dict[str, Any] = Body(...),
    service: ProjectService = Depends(get_project_service),
) -> dict:
    return await service.create_project(payload)


@router.patch("/projects/{project_id}")
async def update_project(
    project_id: str,
    changes: dict[str, Any] = Body(...),
    service: ProjectService = Depends(get_project_service),
) -> dict:
    return await service.update_project(project_id, changes)
