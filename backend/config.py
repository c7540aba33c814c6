"""Centralized configuration: all env vars in one place."""

import logging
import os

logger = logging.getLogger(__name__)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid integer for %s=%r, using default %d", name, raw, default)
        return default


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self):
        self.cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
        self.git_sha: str = os.getenv("GIT_SHA", "unknown")
        self.environment: str = os.getenv("ENVIRONMENT", "local")

        # Upstream projects API
        self.projects_api_url: str | None = os.getenv("PROJECTS_API_URL")
        self.projects_api_scope: str | None = os.getenv("PROJECTS_API_SCOPE")
        self.managed_identity_client_id: str | None = os.getenv("MANAGED_IDENTITY_CLIENT_ID")
        self.upstream_timeout_seconds: int = _int_env("UPSTREAM_TIMEOUT_SECONDS", 10)

        # Project cache
        self.project_cache_ttl_seconds: int = _int_env("PROJECT_CACHE_TTL_SECONDS", 300)
        self.project_cache_max_items: int = _int_env("PROJECT_CACHE_MAX_ITEMS", 1000)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def validate(self) -> list[str]:
        """Return list of missing env vars needed to reach the projects API."""
        required = ["PROJECTS_API_URL"]
        if self.projects_api_scope:
            required.append("MANAGED_IDENTITY_CLIENT_ID")
        return [var for var in required if not getattr(self, _attr_for(var))]


settings = Settings()


def _attr_for(env_var: str) -> str:
    """Map env var name to Settings attribute name."""
    mapping = {
        "PROJECTS_API_URL": "projects_api_url",
        "MANAGED_IDENTITY_CLIENT_ID": "managed_identity_client_id",
    }
    return mapping.get(env_var, env_var.lower())
