"""Request error classification.

Normalizes heterogeneous transport failures into a small, stable vocabulary
so calling code (UI, retry logic) can switch on ``ApiError.code`` instead of
parsing httpx exceptions, socket errors, or raw HTTP responses.

Decision order (first match wins):

1. HTTP 401                          -> AUTH_EXPIRED
2. no response, by transport code:
   timeout                           -> REQUEST_TIMEOUT
   ERR_NETWORK / ENOTFOUND           -> NETWORK_ERROR (connectivity issue)
   ECONNREFUSED                      -> CONNECTION_REFUSED (critical)
   anything else                     -> NETWORK_ERROR (raw code kept)
3. HTTP 5xx                          -> SERVER_ERROR
4. HTTP 4xx                          -> CLIENT_ERROR
5. otherwise                         -> the original error, unchanged

``classify`` is pure: the session teardown that goes with AUTH_EXPIRED is
done by whoever subscribes to that code (see ``learnassist.session``).
"""

from __future__ import annotations

import asyncio
import errno
import logging
import socket
from collections.abc import Iterator
from enum import Enum
from typing import Any

import httpx
from pydantic import BaseModel, Field

from learnassist.config import DEFAULT_BACKEND_PORT
from learnassist.exceptions import LearnAssistError

logger = logging.getLogger(__name__)

TIMEOUT_CODES = frozenset({"ECONNABORTED", "ETIMEDOUT"})
UNREACHABLE_CODES = frozenset({"ERR_NETWORK", "ENOTFOUND"})
REFUSED_CODE = "ECONNREFUSED"

_REFUSAL_SIGNATURES = (
    "econnrefused",
    "connection refused",
    "actively refused",
    "errno 111",
    "errno 61",
)
_DNS_SIGNATURES = (
    "enotfound",
    "name or service not known",
    "nodename nor servname",
    "temporary failure in name resolution",
    "getaddrinfo failed",
    "no address associated with hostname",
)

SERVER_ERROR_FALLBACK = "Backend server error. Please try again."
CLIENT_ERROR_FALLBACK = "Invalid request."


class ErrorCode(str, Enum):
    """Stable error categories surfaced to callers."""

    AUTH_EXPIRED = "AUTH_EXPIRED"
    REQUEST_TIMEOUT = "REQUEST_TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    CONNECTION_REFUSED = "CONNECTION_REFUSED"
    SERVER_ERROR = "SERVER_ERROR"
    CLIENT_ERROR = "CLIENT_ERROR"
    BACKEND_UNAVAILABLE = "BACKEND_UNAVAILABLE"


class Diagnostic(BaseModel):
    """Advisory troubleshooting data. Has no behavioral effect."""

    cause: str
    solution: str
    steps: list[str] = Field(default_factory=list)
    port: int | None = None
    timeout: float | None = None


class ApiError(LearnAssistError):
    """A classified request failure.

    Public attributes of the original error (``response``, ``request`` and
    anything a duck-typed transport attached) are copied onto the instance,
    and the original itself is kept as ``original`` and ``__cause__``.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        *,
        is_network_error: bool = False,
        is_auth_error: bool = False,
        is_connectivity_issue: bool = False,
        critical: bool = False,
        can_retry: bool = False,
        status: int | None = None,
        raw_code: str | None = None,
        diagnostic: Diagnostic | None = None,
        original: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.is_network_error = is_network_error
        self.is_auth_error = is_auth_error
        self.is_connectivity_issue = is_connectivity_issue
        self.critical = critical
        self.can_retry = can_retry
        self.status = status
        self.raw_code = raw_code
        self.diagnostic = diagnostic
        self.original = original
        self.backend_available: bool | None = None
        self.response: Any = None
        self.request: Any = None
        if original is not None:
            self.__cause__ = original
            self._adopt(original)

    def _adopt(self, original: BaseException) -> None:
        self.response = _response_of(original)
        self.request = _request_of(original)
        for key, value in getattr(original, "__dict__", {}).items():
            if key.startswith("_") or key in self.__dict__:
                continue
            setattr(self, key, value)

    def to_dict(self) -> dict[str, Any]:
        """Serializable view for rendering or logging."""
        return {
            "code": self.code.value,
            "message": self.message,
            "is_network_error": self.is_network_error,
            "is_auth_error": self.is_auth_error,
            "is_connectivity_issue": self.is_connectivity_issue,
            "critical": self.critical,
            "can_retry": self.can_retry,
            "status": self.status,
            "raw_code": self.raw_code,
            "backend_available": self.backend_available,
            "diagnostic": self.diagnostic.model_dump(exclude_none=True) if self.diagnostic else None,
        }

    def __repr__(self) -> str:
        return f"ApiError(code={self.code.value!r}, message={self.message!r}, status={self.status!r})"


# ---------------------------------------------------------------------------
# Inspection helpers
# ---------------------------------------------------------------------------


def _response_of(error: BaseException) -> Any:
    return getattr(error, "response", None)


def _request_of(error: BaseException) -> Any:
    # httpx.RequestError.request raises RuntimeError when no request is bound.
    try:
        return getattr(error, "request", None)
    except RuntimeError:
        return None


def _status_of(response: Any) -> int | None:
    status = getattr(response, "status_code", None)
    if status is None:
        status = getattr(response, "status", None)
    return status if isinstance(status, int) else None


def _body_message(response: Any) -> str | None:
    """Extract ``message`` from a JSON body, if the backend sent one."""
    body: Any = getattr(response, "data", None)
    if body is None and callable(getattr(response, "json", None)):
        try:
            body = response.json()
        except ValueError:
            return None
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str) and message:
            return message
    return None


def _request_timeout(error: BaseException) -> float | None:
    request = _request_of(error)
    extensions = getattr(request, "extensions", None) or {}
    timeout = extensions.get("timeout")
    if isinstance(timeout, dict):
        values = [v for v in timeout.values() if isinstance(v, (int, float))]
        return max(values) if values else None
    return None


def _iter_chain(error: BaseException) -> Iterator[BaseException]:
    """Walk causes, contexts, wrapped OS errors and exception groups."""
    seen: set[int] = set()
    stack: list[BaseException] = [error]
    while stack:
        exc = stack.pop()
        if id(exc) in seen:
            continue
        seen.add(id(exc))
        yield exc
        for linked in (exc.__cause__, exc.__context__, getattr(exc, "os_error", None)):
            if isinstance(linked, BaseException):
                stack.append(linked)
        nested = getattr(exc, "exceptions", None)
        if isinstance(nested, (list, tuple)):
            stack.extend(e for e in nested if isinstance(e, BaseException))


def transport_code(error: BaseException) -> str | None:
    """Return the transport failure code for ``error``, or None if it isn't one.

    Duck-typed errors carrying a string ``code`` keep it. httpx and socket
    failures are mapped onto the classic codes: ECONNABORTED for timeouts,
    ECONNREFUSED, ENOTFOUND for DNS failures, the errno name for other OS
    errors and ERR_NETWORK for everything else on the network layer.
    """
    code = getattr(error, "code", None)
    if isinstance(code, str) and code:
        return code

    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError)):
        return "ECONNABORTED"
    if not isinstance(error, (httpx.TransportError, OSError)):
        return None

    errno_code: str | None = None
    for exc in _iter_chain(error):
        if isinstance(exc, ConnectionRefusedError):
            return REFUSED_CODE
        if isinstance(exc, socket.gaierror):
            return "ENOTFOUND"
        if isinstance(exc, OSError) and exc.errno and errno_code is None:
            errno_code = errno.errorcode.get(exc.errno)

    text = " ".join(str(exc).lower() for exc in _iter_chain(error))
    if any(sig in text for sig in _REFUSAL_SIGNATURES):
        return REFUSED_CODE
    if any(sig in text for sig in _DNS_SIGNATURES):
        return "ENOTFOUND"
    return errno_code or "ERR_NETWORK"


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def _classify_transport(
    error: BaseException, code: str, backend_port: int
) -> ApiError:
    if code in TIMEOUT_CODES:
        return ApiError(
            ErrorCode.REQUEST_TIMEOUT,
            "Request timeout. Backend server is slow or unresponsive.",
            is_network_error=True,
            raw_code=code,
            diagnostic=Diagnostic(
                cause="Network request exceeded timeout",
                solution="Check the backend logs and its database connection",
                timeout=_request_timeout(error),
            ),
            original=error,
        )

    if code in UNREACHABLE_CODES:
        return ApiError(
            ErrorCode.NETWORK_ERROR,
            "Network error. Cannot reach backend server.",
            is_network_error=True,
            is_connectivity_issue=True,
            raw_code=code,
            diagnostic=Diagnostic(
                cause="Network layer failed",
                solution="Check backend is running on correct port",
                port=backend_port,
                steps=[
                    "Verify the backend process is running",
                    f"Verify the backend listens on port {backend_port}",
                    f"Check: http://127.0.0.1:{backend_port}/health",
                    "Verify LEARNASSIST_BACKEND_URL matches the backend address",
                ],
            ),
            original=error,
        )

    if code == REFUSED_CODE or "econnrefused" in str(error).lower():
        return ApiError(
            ErrorCode.CONNECTION_REFUSED,
            "Backend server connection refused. Server may not be running.",
            is_network_error=True,
            is_connectivity_issue=True,
            critical=True,
            raw_code=code,
            diagnostic=Diagnostic(
                cause="Backend server is not listening on the specified port",
                solution="Start the backend server",
                port=backend_port,
                steps=[
                    "1. Open a new terminal in the backend directory",
                    "2. Start the backend server",
                    "3. Wait for the startup banner to report success",
                    f"4. Verify the server reports port {backend_port}",
                    f"5. Test the health endpoint: http://127.0.0.1:{backend_port}/health",
                    "6. Retry the request",
                ],
            ),
            original=error,
        )

    return ApiError(
        ErrorCode.NETWORK_ERROR,
        f"Network error ({code}): Cannot connect to backend.",
        is_network_error=True,
        raw_code=code,
        original=error,
    )


def classify(
    error: BaseException, *, backend_port: int = DEFAULT_BACKEND_PORT
) -> ApiError | BaseException:
    """Classify a request failure. Unrecognized errors are returned unchanged."""
    if isinstance(error, ApiError):
        return error

    response = _response_of(error)
    status = _status_of(response) if response is not None else None

    if status == 401:
        logger.warning("Session expired (401 Unauthorized)")
        return ApiError(
            ErrorCode.AUTH_EXPIRED,
            "Session expired. Please login again.",
            is_auth_error=True,
            status=status,
            original=error,
        )

    if response is None:
        code = transport_code(error)
        if code is None:
            return error
        return _classify_transport(error, code, backend_port)

    if status is not None and status >= 500:
        logger.error("Backend server error: %s", status)
        return ApiError(
            ErrorCode.SERVER_ERROR,
            _body_message(response) or SERVER_ERROR_FALLBACK,
            status=status,
            original=error,
        )

    if status is not None and 400 <= status < 500:
        return ApiError(
            ErrorCode.CLIENT_ERROR,
            _body_message(response) or CLIENT_ERROR_FALLBACK,
            status=status,
            original=error,
        )

    return error
