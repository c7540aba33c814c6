"""FastAPI application entry point for the project cache API."""

import logging
import sys

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from config import Settings, settings
from errors import register_error_handlers
from services.project_cache import ProjectCache
from services.project_service import ProjectService
from services.project_source import ProjectSource, build_project_source

# Structured logging: JSON for production, human-readable for local
if settings.is_production:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}',
        stream=sys.stdout,
    )
else:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

logger = logging.getLogger(__name__)


def create_app(
    config: Settings = settings,
    cache: ProjectCache | None = None,
    source: ProjectSource | None = None,
) -> FastAPI:
    """Build the app with one shared project cache.

    Without ``source`` the projects API named in ``config`` is used; when
    ``PROJECTS_API_URL`` is unset the app runs without an upstream.
    """
    app = FastAPI(title="Project Cache API", version="1.0.0")

    if cache is None:
        cache = ProjectCache(
            default_ttl=config.project_cache_ttl_seconds,
            max_items=config.project_cache_max_items,
        )
    if source is None:
        source = build_project_source(config)

    app.state.settings = config
    app.state.project_cache = cache
    app.state.project_source = source
    app.state.project_service = ProjectService(cache, source)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Cache"],
    )

    # Security headers
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        if config.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    # Centralized error handlers
    register_error_handlers(app)

    from routes.health import router as health_router
    from routes.projects import router as projects_router

    app.include_router(health_router)
    app.include_router(projects_router)

    @app.on_event("startup")
    async def _validate_config() -> None:
        missing = config.validate()
        if missing:
            logger.warning("Missing env vars (projects API unavailable): %s", ", ".join(missing))

    @app.on_event("shutdown")
    async def _close_source() -> None:
        aclose = getattr(app.state.project_source, "aclose", None)
        if aclose is not None:
            await aclose()

    return app


app = create_app()
