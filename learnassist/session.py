"""Client-side session state and the auth-expiry effect.

``SessionStore`` holds the bearer token and user profile returned by the
login endpoint, optionally persisted to a JSON file between runs.
``AuthExpiryHandler`` is subscribed to AUTH_EXPIRED errors by the
composition root: it clears the session and sends the user back to the
login view.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from learnassist.resilience.errors import ApiError

logger = logging.getLogger(__name__)


class SessionStore:
    """Bearer token and user profile for the signed-in user."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path else None
        self.token: str | None = None
        self.user: dict[str, Any] | None = None
        if self.path is not None:
            self._load()

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def save(self, token: str, user: dict[str, Any] | None = None) -> None:
        self.token = token
        self.user = user
        self._persist()

    def clear(self) -> None:
        self.token = None
        self.user = None
        if self.path is not None and self.path.exists():
            self.path.unlink()
        logger.info("Session cleared")

    def auth_headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def _load(self) -> None:
        if self.path is None or not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Could not load session file %s: %s", self.path, exc)
            return
        if not isinstance(data, dict):
            logger.warning("Ignoring session file %s: expected a JSON object", self.path)
            return
        self.token = data.get("token") or None
        self.user = data.get("user")

    def _persist(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({"token": self.token, "user": self.user}), encoding="utf-8")


class Navigator:
    """Tracks the current view and records redirects."""

    def __init__(self, current_path: str = "/") -> None:
        self.current_path = current_path
        self.history: list[str] = []

    def navigate(self, url: str) -> None:
        self.history.append(url)
        self.current_path = url
        logger.info("Navigating to %s", url)


class AuthExpiryHandler:
    """Tear down the session and redirect to login on AUTH_EXPIRED."""

    def __init__(
        self,
        session: SessionStore,
        navigator: Navigator | None = None,
        login_path: str = "/login",
    ) -> None:
        self.session = session
        self.navigator = navigator
        self.login_path = login_path

    def __call__(self, error: ApiError) -> None:
        self.session.clear()
        if self.navigator is None:
            return
        current = urlsplit(self.navigator.current_path).path
        if current != self.login_path:
            self.navigator.navigate(f"{self.login_path}?reason=expired")
