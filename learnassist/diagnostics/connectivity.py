"""Backend connectivity verification.

Checks whether the backend port is bound, probes the root and API liveness
endpoints, and collects issues plus suggested fixes for the CLI to print.
"""

from __future__ import annotations

import errno
import logging
import socket
from dataclasses import asdict, dataclass, field
from typing import Any
from urllib.parse import urlsplit

import httpx

from learnassist.config import Settings
from learnassist.resilience.errors import transport_code

logger = logging.getLogger(__name__)


@dataclass
class ProbeResult:
    url: str
    status: int | None = None
    data: Any = None
    error: str | None = None
    code: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is not None and 200 <= self.status < 300


@dataclass
class ConnectivityReport:
    backend_url: str
    port: int
    port_in_use: bool | None = None
    root_health: ProbeResult | None = None
    api_health: ProbeResult | None = None
    database_connected: bool | None = None
    details: list[str] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)
    solutions: list[str] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return bool(
            (self.root_health and self.root_health.ok) or (self.api_health and self.api_health.ok)
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["healthy"] = self.healthy
        return data


def is_port_in_use(host: str, port: int) -> bool:
    """True if something is already listening on ``host:port``."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError as exc:
            if exc.errno == errno.EADDRINUSE:
                return True
            raise
    return False


async def probe(http: httpx.AsyncClient, url: str, timeout: float = 5.0) -> ProbeResult:
    """GET ``url``; transport failures are reported, not raised."""
    try:
        response = await http.get(url, timeout=timeout)
    except httpx.HTTPError as exc:
        return ProbeResult(url=url, error=str(exc) or type(exc).__name__, code=transport_code(exc))
    try:
        data: Any = response.json()
    except ValueError:
        data = response.text
    return ProbeResult(url=url, status=response.status_code, data=data)


async def verify_connectivity(
    settings: Settings,
    http: httpx.AsyncClient | None = None,
    *,
    check_port: bool = True,
) -> ConnectivityReport:
    report = ConnectivityReport(backend_url=settings.backend_url, port=settings.backend_port)
    host = urlsplit(settings.backend_url).hostname or "127.0.0.1"

    if check_port:
        try:
            report.port_in_use = is_port_in_use(host, report.port)
        except OSError as exc:
            logger.warning("Could not determine status of port %d: %s", report.port, exc)
        if report.port_in_use is False:
            report.issues.append(f"Nothing is listening on port {report.port}")
            report.solutions.append("Start the backend server")

    owns_http = http is None
    http = http if http is not None else httpx.AsyncClient()
    try:
        root_url = f"{settings.backend_url.rstrip('/')}{settings.health_path}"
        report.root_health = await probe(http, root_url, settings.probe_timeout)
        report.api_health = await probe(http, settings.health_url, settings.probe_timeout)
    finally:
        if owns_http:
            await http.aclose()

    root = report.root_health
    if root.ok:
        report.details.append(f"Responding to {settings.health_path}")
    elif root.error:
        report.details.append(f"Not responding to health check: {root.error}")
        report.issues.append("Backend server is not running or not reachable")
        report.solutions.append(f"Start the backend and check {root_url}")
    else:
        report.details.append(f"{settings.health_path} returned HTTP {root.status}")

    api = report.api_health
    if api.status in (200, 503):
        database = api.data.get("database") if isinstance(api.data, dict) else None
        if isinstance(database, dict):
            report.database_connected = bool(database.get("connected"))
        report.details.append(f"{settings.health_url} responding ({api.status})")
        if report.database_connected is False:
            report.issues.append("Backend database is not connected")
            report.solutions.append("Start the database server and restart the backend")
    elif api.error:
        report.details.append(f"API health endpoint failed: {api.error}")
    else:
        report.details.append(f"{settings.health_url} returned HTTP {api.status}")
        report.issues.append(f"API health endpoint returned HTTP {api.status}")
        report.solutions.append(f"Check that the backend serves {settings.api_path}")

    return report
