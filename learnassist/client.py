"""Async HTTP client for the learning-assistant API.

Every request goes through the same path: optional pre-flight availability
check against the health monitor, bearer token from the session store, then
the httpx call. Failures are classified into ``ApiError`` values, labelled
with the monitor's current availability, handed to any subscribers for that
error code, and re-raised. Nothing is swallowed.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

import httpx

from learnassist.config import Settings
from learnassist.resilience.errors import ApiError, ErrorCode, classify
from learnassist.resilience.health import HealthMonitor
from learnassist.session import SessionStore

logger = logging.getLogger(__name__)

ErrorSubscriber = Callable[[ApiError], Any]

BACKEND_UNAVAILABLE_MESSAGE = "Backend is not responding. Retrying automatically..."


def create_http_client(settings: Settings, **kwargs: Any) -> httpx.AsyncClient:
    """Build the shared httpx client rooted at ``<backend_url><api_path>``."""
    return httpx.AsyncClient(base_url=settings.api_root, timeout=settings.timeout, **kwargs)


class ApiClient:
    """Resilient request wrapper used by the endpoint helpers."""

    def __init__(
        self,
        settings: Settings,
        monitor: HealthMonitor,
        session: SessionStore,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self.monitor = monitor
        self.session = session
        self._http = http if http is not None else create_http_client(settings)
        self._subscribers: dict[ErrorCode, list[ErrorSubscriber]] = defaultdict(list)

    @property
    def http(self) -> httpx.AsyncClient:
        return self._http

    def on_error(self, code: ErrorCode, callback: ErrorSubscriber) -> None:
        """Call ``callback`` with every ApiError of ``code`` before it is raised."""
        self._subscribers[code].append(callback)

    def _notify(self, error: ApiError) -> None:
        for callback in self._subscribers.get(error.code, []):
            try:
                callback(error)
            except Exception:
                logger.exception("Error subscriber for %s failed", error.code.value)

    def _trace(self, msg: str, *args: Any) -> None:
        logger.log(logging.INFO if self.settings.debug else logging.DEBUG, msg, *args)

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        data: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Issue a request and return the decoded body.

        Raises ``ApiError`` for every classified failure; errors the
        classifier does not recognize are re-raised unchanged.
        """
        method = method.upper()

        if self.settings.preflight_health_check and not await self.monitor.check_health():
            error = ApiError(
                ErrorCode.BACKEND_UNAVAILABLE,
                BACKEND_UNAVAILABLE_MESSAGE,
                is_connectivity_issue=True,
                can_retry=True,
            )
            error.backend_available = False
            self._notify(error)
            raise error

        kwargs: dict[str, Any] = {"headers": self.session.auth_headers()}
        if json is not None:
            kwargs["json"] = json
        if data is not None:
            kwargs["data"] = data
        if files is not None:
            kwargs["files"] = files
        if params is not None:
            kwargs["params"] = params
        if timeout is not None:
            kwargs["timeout"] = timeout

        self._trace("API request: %s %s", method, path)
        try:
            response = await self._http.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            classified = classify(exc, backend_port=self.settings.backend_port)
            if not isinstance(classified, ApiError):
                raise
            classified.backend_available = self.monitor.is_available
            logger.warning("API %s %s failed: %s (%s)", method, path, classified.code.value, classified)
            self._notify(classified)
            raise classified from exc

        self._trace("API response: %s %s", response.status_code, path)
        return _decode(response)

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("POST", path, json=json, **kwargs)

    async def put(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("PUT", path, json=json, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)

    async def aclose(self) -> None:
        if not self._http.is_closed:
            await self._http.aclose()


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
