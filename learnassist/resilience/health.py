"""Backend availability monitor.

Probes the backend liveness endpoint (``GET <api-root>/health``) on demand
and on a timer, and keeps an availability flag behind a consecutive-failure
circuit breaker. Callers get a cheap, rate-limited answer to "is the backend
reachable right now"; probe failures are absorbed into the breaker state and
logged, never raised.

Only one probe runs at a time. A non-forced call made while a probe is in
flight returns the last known flag; a forced call waits for the in-flight
probe and returns its result instead of starting a second one.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httpx

from learnassist.config import Settings
from learnassist.resilience.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)

# Keeps multiplier ** failures finite during long outages
MAX_BACKOFF_EXPONENT = 32


@dataclass(frozen=True)
class HealthState:
    """Point-in-time snapshot of the monitor."""

    is_available: bool
    consecutive_failures: int
    max_failures: int
    last_check_time: float | None
    last_checked_at: datetime | None
    is_checking: bool
    is_monitoring: bool
    is_recovering: bool


class HealthMonitor:
    """Rate-limited liveness prober with failure hysteresis."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        health_url: str,
        *,
        probe_timeout: float = 5.0,
        min_check_interval: float = 2.0,
        max_failures: int = 3,
        initial_backoff: float = 1.0,
        max_backoff: float = 30.0,
        backoff_multiplier: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
        rng: Callable[[], float] = random.random,
        name: str = "backend",
    ):
        self.health_url = health_url
        self.probe_timeout = probe_timeout
        self.min_check_interval = min_check_interval
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self.backoff_multiplier = backoff_multiplier

        self._http = http
        self._clock = clock
        self._rng = rng
        self._breaker = CircuitBreaker(name, failure_threshold=max_failures)
        self._pending: asyncio.Future[bool] | None = None
        self._last_check_time: float | None = None
        self._last_checked_at: datetime | None = None
        self._monitor_task: asyncio.Task[None] | None = None
        self._recovery_task: asyncio.Task[None] | None = None

    @classmethod
    def from_settings(cls, http: httpx.AsyncClient, settings: Settings, **kwargs: Any) -> HealthMonitor:
        return cls(
            http,
            settings.health_url,
            probe_timeout=settings.probe_timeout,
            min_check_interval=settings.min_check_interval,
            max_failures=settings.max_failures,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_available(self) -> bool:
        return self._breaker.is_available

    @property
    def consecutive_failures(self) -> int:
        return self._breaker.failure_count

    @property
    def max_failures(self) -> int:
        return self._breaker.failure_threshold

    @property
    def is_checking(self) -> bool:
        return self._pending is not None

    @property
    def last_check_time(self) -> float | None:
        return self._last_check_time

    @property
    def is_monitoring(self) -> bool:
        return self._monitor_task is not None and not self._monitor_task.done()

    @property
    def is_recovering(self) -> bool:
        return self._recovery_task is not None and not self._recovery_task.done()

    def status(self) -> HealthState:
        return HealthState(
            is_available=self.is_available,
            consecutive_failures=self.consecutive_failures,
            max_failures=self.max_failures,
            last_check_time=self._last_check_time,
            last_checked_at=self._last_checked_at,
            is_checking=self.is_checking,
            is_monitoring=self.is_monitoring,
            is_recovering=self.is_recovering,
        )

    def reset(self) -> None:
        """Forget failures and the rate-limit window; stops any recovery loop."""
        self.stop_recovery()
        self._breaker.reset()
        self._last_check_time = None
        logger.info("Health monitor reset")

    # ------------------------------------------------------------------
    # Probing
    # ------------------------------------------------------------------

    async def check_health(self, force: bool = False) -> bool:
        """Return whether the backend is available, probing if allowed."""
        if self._pending is not None:
            if not force:
                return self.is_available
            return await asyncio.shield(self._pending)

        if (
            not force
            and self._last_check_time is not None
            and self._clock() - self._last_check_time < self.min_check_interval
        ):
            return self.is_available

        pending: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        self._pending = pending
        try:
            await self._probe()
        finally:
            self._pending = None
            self._last_check_time = self._clock()
            self._last_checked_at = datetime.now(timezone.utc)
            if not pending.done():
                pending.set_result(self.is_available)
        return self.is_available

    async def _probe(self) -> None:
        logger.debug("Health check: %s", self.health_url)
        try:
            async with asyncio.timeout(self.probe_timeout):
                response = await self._http.get(self.health_url, timeout=self.probe_timeout)
        except Exception as exc:
            logger.warning("Backend health check failed: %s: %s", type(exc).__name__, exc)
            self._breaker.record_failure()
            return

        if response.is_success:
            logger.debug("Backend health check passed (%s)", response.status_code)
            self._breaker.record_success()
        else:
            logger.warning("Backend health check failed: HTTP %s", response.status_code)
            self._breaker.record_failure()

    # ------------------------------------------------------------------
    # Periodic monitoring
    # ------------------------------------------------------------------

    def start_monitoring(self, interval: float = 5.0) -> None:
        """Probe every ``interval`` seconds. Replaces any running monitor."""
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.stop_monitoring()
        self._monitor_task = asyncio.get_running_loop().create_task(self._monitor_loop(interval))
        logger.info("Health monitoring started (every %.1fs)", interval)

    def stop_monitoring(self) -> None:
        if self._monitor_task is not None:
            self._monitor_task.cancel()
            self._monitor_task = None
            logger.info("Health monitoring stopped")

    async def _monitor_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.check_health()
            except Exception:
                logger.exception("Health monitoring error")

    # ------------------------------------------------------------------
    # Recovery with backoff
    # ------------------------------------------------------------------

    def backoff_delay(self) -> float:
        """Exponential delay for the next recovery probe, with +/-20% jitter."""
        exponent = min(self.consecutive_failures, MAX_BACKOFF_EXPONENT)
        delay = min(
            self.initial_backoff * self.backoff_multiplier ** exponent,
            self.max_backoff,
        )
        jitter = delay * 0.2 * (self._rng() * 2 - 1)
        return max(self.initial_backoff, delay + jitter)

    def start_recovery(self, on_recovery: Callable[[], Any] | None = None) -> None:
        """Re-probe with backoff until a probe succeeds, then call ``on_recovery``."""
        if self.is_recovering:
            logger.info("Recovery already in progress, skipping")
            return
        self._recovery_task = asyncio.get_running_loop().create_task(
            self._recovery_loop(on_recovery)
        )

    def stop_recovery(self) -> None:
        if self._recovery_task is not None:
            self._recovery_task.cancel()
            self._recovery_task = None
            logger.info("Backend recovery stopped")

    async def _recovery_loop(self, on_recovery: Callable[[], Any] | None) -> None:
        logger.info("Starting backend recovery (exponential backoff)")
        while True:
            delay = self.backoff_delay()
            logger.info(
                "Retrying backend health check in %.1fs (failures: %d)",
                delay,
                self.consecutive_failures,
            )
            await asyncio.sleep(delay)
            await self.check_health(force=True)
            if self.consecutive_failures == 0:
                break

        logger.info("Backend recovered")
        if on_recovery is None:
            return
        try:
            result = on_recovery()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Error in recovery callback")

    async def aclose(self) -> None:
        """Cancel background monitoring and recovery and wait for them to exit."""
        tasks = [t for t in (self._monitor_task, self._recovery_task) if t is not None]
        self.stop_monitoring()
        self.stop_recovery()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
