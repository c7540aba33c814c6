"""Custom exceptions and centralized FastAPI error handlers."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ProjectServiceError(Exception):
    """Base exception with HTTP status code."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


class ProjectNotFoundError(ProjectServiceError):
    def __init__(self, project_id: str):
        super().__init__(f"Project not found: {project_id}", status_code=404)
        self.project_id = project_id


class UpstreamError(ProjectServiceError):
    """The projects API answered with something we can't use."""

    def __init__(self, message: str, upstream_status: int | None = None, status_code: int = 502):
        super().__init__(message, status_code=status_code)
        self.upstream_status = upstream_status


class UpstreamUnavailableError(UpstreamError):
    """The projects API could not be reached or failed server-side."""

    def __init__(self, message: str, upstream_status: int | None = None):
        super().__init__(message, upstream_status=upstream_status, status_code=503)


def register_error_handlers(app: FastAPI) -> None:
    """Register centralized exception handlers on the FastAPI app."""

    @app.exception_handler(ProjectServiceError)
    async def handle_project_service_error(_request: Request, exc: ProjectServiceError):
        return JSONResponse({"error": str(exc)}, status_code=exc.status_code)

    @app.exception_handler(ValueError)
    async def handle_value_error(_request: Request, exc: ValueError):
        return JSONResponse({"error": str(exc)}, status_code=400)

    @app.exception_handler(Exception)
    async def handle_unexpected(_request: Request, exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        return JSONResponse(
            {"error": "Internal server error"},
            status_code=500,
        )
