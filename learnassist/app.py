"""Composition root: one monitor, one session, one client per application."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import httpx

from learnassist.client import ApiClient, create_http_client
from learnassist.config import Settings
from learnassist.resilience.errors import ApiError, ErrorCode
from learnassist.resilience.health import HealthMonitor
from learnassist.session import AuthExpiryHandler, Navigator, SessionStore

logger = logging.getLogger(__name__)


class LearnAssist:
    """Owns the long-lived client objects and their lifecycle."""

    def __init__(
        self,
        settings: Settings,
        http: httpx.AsyncClient,
        monitor: HealthMonitor,
        session: SessionStore,
        navigator: Navigator,
        client: ApiClient,
    ) -> None:
        self.settings = settings
        self.http = http
        self.monitor = monitor
        self.session = session
        self.navigator = navigator
        self.client = client
        self._running = False

    @classmethod
    def create(
        cls,
        settings: Settings | None = None,
        *,
        http: httpx.AsyncClient | None = None,
        session: SessionStore | None = None,
        navigator: Navigator | None = None,
        on_recovery: Callable[[], Any] | None = None,
        **monitor_kwargs: Any,
    ) -> LearnAssist:
        """Wire the monitor, session and client together.

        AUTH_EXPIRED errors clear the session and redirect to the login view;
        BACKEND_UNAVAILABLE errors start the monitor's recovery loop.
        """
        settings = settings or Settings()
        http = http if http is not None else create_http_client(settings)
        monitor = HealthMonitor.from_settings(http, settings, **monitor_kwargs)
        session = session if session is not None else SessionStore(settings.session_file)
        navigator = navigator if navigator is not None else Navigator()
        client = ApiClient(settings, monitor, session, http)

        client.on_error(
            ErrorCode.AUTH_EXPIRED,
            AuthExpiryHandler(session, navigator, settings.login_path),
        )

        def _recover(_error: ApiError) -> None:
            monitor.start_recovery(on_recovery)

        client.on_error(ErrorCode.BACKEND_UNAVAILABLE, _recover)
        return cls(settings, http, monitor, session, navigator, client)

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> bool:
        """Probe the backend once and start periodic monitoring."""
        if self._running:
            return self.monitor.is_available
        available = await self.monitor.check_health(force=True)
        self.monitor.start_monitoring(self.settings.monitor_interval)
        self._running = True
        logger.info(
            "learnassist client started - backend %s (%s)",
            "available" if available else "unavailable",
            self.settings.api_root,
        )
        return available

    async def stop(self) -> None:
        await self.monitor.aclose()
        await self.client.aclose()
        self._running = False
        logger.info("learnassist client stopped")

    async def __aenter__(self) -> LearnAssist:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()
