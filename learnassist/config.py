"""Client configuration for the learning-assistant backend."""

from __future__ import annotations

import logging
from urllib.parse import urlsplit

from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_BACKEND_PORT = 5000


class Settings(BaseSettings):
    """Environment-driven settings for the API client and health monitor."""

    backend_url: str = "http://127.0.0.1:5000"
    api_path: str = "/api"
    timeout: float = 60.0
    debug: bool = False

    # Liveness probe
    health_path: str = "/health"
    probe_timeout: float = 5.0
    min_check_interval: float = 2.0
    max_failures: int = 3
    monitor_interval: float = 5.0
    preflight_health_check: bool = True

    # Session / navigation
    login_path: str = "/login"
    session_file: str | None = None

    model_config = {"env_prefix": "LEARNASSIST_", "env_file": ".env", "extra": "ignore"}

    @property
    def api_root(self) -> str:
        return f"{self.backend_url.rstrip('/')}/{self.api_path.strip('/')}"

    @property
    def health_url(self) -> str:
        return f"{self.api_root}{self.health_path}"

    @property
    def backend_port(self) -> int:
        """Port parsed from backend_url, falling back to the backend's default."""
        return urlsplit(self.backend_url).port or DEFAULT_BACKEND_PORT
