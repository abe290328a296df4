"""Consecutive-failure circuit breaker for backend availability.

States:
- CLOSED: Backend considered available, requests pass through
- OPEN: Backend considered unavailable after repeated failures

Config: 3 consecutive failures -> OPEN, 1 success -> CLOSED

Failures below the threshold keep the breaker CLOSED so a single transient
probe failure never flips availability.
"""

from __future__ import annotations

import logging
from enum import Enum

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"


class CircuitBreaker:
    """Failure counter with hysteresis. Not thread-safe; one event loop only."""

    def __init__(self, name: str, failure_threshold: int = 3):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        self.name = name
        self.failure_threshold = failure_threshold
        self._failure_count = 0

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def state(self) -> CircuitState:
        if self._failure_count >= self.failure_threshold:
            return CircuitState.OPEN
        return CircuitState.CLOSED

    @property
    def is_available(self) -> bool:
        return self.state == CircuitState.CLOSED

    def record_success(self) -> None:
        """Record a successful probe."""
        if self.state == CircuitState.OPEN:
            logger.info("Circuit %s -> CLOSED (recovered)", self.name)
        self._failure_count = 0

    def record_failure(self) -> None:
        """Record a failed probe."""
        was_open = self.state == CircuitState.OPEN
        self._failure_count += 1
        if self.state == CircuitState.OPEN and not was_open:
            logger.error(
                "Circuit %s -> OPEN (%d consecutive failures)", self.name, self._failure_count
            )
        else:
            logger.warning(
                "Circuit %s failure (%d/%d)", self.name, self._failure_count, self.failure_threshold
            )

    def reset(self) -> None:
        """Manually reset the circuit to CLOSED."""
        self._failure_count = 0
