"""learnassist: resilient async client for the learning-assistant backend."""

from __future__ import annotations

from .app import LearnAssist
from .client import ApiClient
from .config import Settings
from .exceptions import LearnAssistError
from .resilience import ApiError, ErrorCode, HealthMonitor, retry_request
from .session import AuthExpiryHandler, Navigator, SessionStore

__all__ = [
    "ApiClient",
    "ApiError",
    "AuthExpiryHandler",
    "ErrorCode",
    "HealthMonitor",
    "LearnAssist",
    "LearnAssistError",
    "Navigator",
    "SessionStore",
    "Settings",
    "retry_request",
]
