"""Upstream projects API client.

The projects API is the source of truth for production projects; this
service only caches what it returns.

Endpoints (relative to PROJECTS_API_URL):
    GET  /projects          -> list of project records
    GET  /projects/{id}     -> one project record
    PUT  /projects/{id}     -> store a project record, returns it

Auth (optional):
    ManagedIdentityCredential → bearer token for PROJECTS_API_SCOPE
    The credential call is blocking (IMDS), so it runs in a worker thread.
"""

import asyncio
import logging
import threading
import time
from typing import Any, Callable, Protocol
from urllib.parse import quote

import httpx
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import ManagedIdentityCredential

from config import Settings
from errors import ProjectNotFoundError, UpstreamError, UpstreamUnavailableError

logger = logging.getLogger(__name__)

# Refresh managed identity tokens this long before they expire
TOKEN_REFRESH_MARGIN = 5 * 60


class ProjectSource(Protocol):
    async def fetch_all(self) -> list[dict]: ...

    async def fetch_one(self, project_id: str) -> dict: ...

    async def save(self, project: dict) -> dict: ...


def managed_identity_token_provider(client_id: str | None, scope: str) -> Callable[[], str]:
    """Build a token provider backed by a User-Assigned Managed Identity.

    The credential is created on first use and the token is reused until
    shortly before it expires. The provider blocks; call it off the event loop.
    """
    lock = threading.Lock()
    state: dict[str, Any] = {"credential": None, "token": None, "expires_on": 0}

    def _get_credential() -> ManagedIdentityCredential:
        if not client_id:
            raise ValueError("MANAGED_IDENTITY_CLIENT_ID environment variable is required")
        return ManagedIdentityCredential(client_id=client_id)

    def _get_token() -> str:
        with lock:
            if state["token"] is None or time.time() >= state["expires_on"] - TOKEN_REFRESH_MARGIN:
                if state["credential"] is None:
                    state["credential"] = _get_credential()
                token = state["credential"].get_token(scope)
                state["token"] = token.token
                state["expires_on"] = token.expires_on
            return state["token"]

    return _get_token


class HttpProjectSource:
    def __init__(
        self,
        base_url: str,
        client: httpx.AsyncClient | None = None,
        token_provider: Callable[[], str] | None = None,
        timeout: float = 10,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._token_provider = token_provider

    async def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token_provider is not None:
            try:
                token = await asyncio.to_thread(self._token_provider)
            except (ValueError, ClientAuthenticationError) as e:
                logger.warning("Projects API token unavailable: %s", e)
                raise UpstreamUnavailableError(f"Projects API credentials unavailable: {e}") from e
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(self, method: str, path: str, project_id: str | None = None, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        headers = await self._headers()
        try:
            resp = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Projects API %s %s failed: %s", method, url, e)
            raise UpstreamUnavailableError(f"Projects API unreachable: {e}") from e

        if resp.status_code == 404 and project_id is not None:
            raise ProjectNotFoundError(project_id)
        if resp.status_code >= 500:
            logger.warning("Projects API %s %s returned %d", method, url, resp.status_code)
            raise UpstreamUnavailableError(
                f"Projects API error: HTTP {resp.status_code}", upstream_status=resp.status_code
            )
        if resp.status_code >= 400:
            raise UpstreamError(
                f"Projects API rejected request: HTTP {resp.status_code}", upstream_status=resp.status_code
            )

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamError("Projects API returned invalid JSON", upstream_status=resp.status_code) from e

    @staticmethod
    def _project_path(project_id: str) -> str:
        return f"/projects/{quote(project_id, safe='')}"

    async def fetch_all(self) -> list[dict]:
        data = await self._request("GET", "/projects")
        if not isinstance(data, list):
            raise UpstreamError(f"Projects API returned {type(data).__name__}, expected a list")
        logger.info("Fetched %d projects from upstream", len(data))
        return data

    async def fetch_one(self, project_id: str) -> dict:
        data = await self._request("GET", self._project_path(project_id), project_id=project_id)
        if not isinstance(data, dict):
            raise UpstreamError(f"Projects API returned {type(data).__name__} for project {project_id}")
        return data

    async def save(self, project: dict) -> dict:
        data = await self._request("PUT", self._project_path(project["id"]), json=project)
        # Some deployments answer PUT with an empty body
        return data if isinstance(data, dict) and data else project

    async def aclose(self) -> None:
        await self._client.aclose()


def build_project_source(settings: Settings) -> HttpProjectSource | None:
    """Create the upstream client from settings, or None if not configured.

    A missing managed identity only surfaces when a token is first needed.
    """
    if not settings.projects_api_url:
        return None

    token_provider = None
    if settings.projects_api_scope:
        token_provider = managed_identity_token_provider(
            settings.managed_identity_client_id, settings.projects_api_scope
        )

    return HttpProjectSource(
        settings.projects_api_url,
        token_provider=token_provider,
        timeout=settings.upstream_timeout_seconds,
    )
