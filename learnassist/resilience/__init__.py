"""Resilience layer for the learnassist API client.

This package provides:
- A consecutive-failure circuit breaker
- A rate-limited backend health monitor with periodic polling and recovery
- Classification of request failures into stable error codes
- Retry with exponential backoff for connectivity failures
"""

from __future__ import annotations

from .circuit_breaker import CircuitBreaker, CircuitState
from .errors import ApiError, Diagnostic, ErrorCode, classify, transport_code
from .health import HealthMonitor, HealthState
from .retry import is_retryable, retry_request

__all__ = [
    "ApiError",
    "CircuitBreaker",
    "CircuitState",
    "Diagnostic",
    "ErrorCode",
    "HealthMonitor",
    "HealthState",
    "classify",
    "is_retryable",
    "retry_request",
    "transport_code",
]
