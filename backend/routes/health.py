"""Health, readiness and cache diagnostics routes."""

import logging

from fastapi import APIRouter, Depends, Request

from config import Settings
from routes.projects import get_project_cache
from services.project_cache import STALE_ACCEPTABLE_TIME, ProjectCache

logger = logging.getLogger(__name__)

router = APIRouter()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


@router.get("/ready")
async def ready(config: Settings = Depends(get_settings)) -> dict:
    """Lightweight readiness check, no external calls."""
    return {"status": "ok", "service": "project-cache-api", "commit": config.git_sha}


@router.get("/health")
async def health(
    request: Request,
    cache: ProjectCache = Depends(get_project_cache),
    config: Settings = Depends(get_settings),
) -> dict:
    """Readiness plus cache statistics. Reading stats never counts as a cache hit."""
    configured = request.app.state.project_source is not None
    return {
        "status": "ok",
        "service": "project-cache-api",
        "commit": config.git_sha,
        "upstream": "configured" if configured else "not_configured",
        "cache": cache.get_stats().to_dict(),
    }


@router.get("/health/cache")
async def cache_stats(cache: ProjectCache = Depends(get_project_cache)) -> dict:
    stats = cache.get_stats().to_dict()
    stats["default_ttl"] = cache.default_ttl
    stats["max_items"] = cache.max_items
    stats["stale_acceptable_time"] = STALE_ACCEPTABLE_TIME
    return stats
