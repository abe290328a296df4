"""Shared test fixtures for learnassist."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from learnassist.config import Settings
from learnassist.resilience.health import HealthMonitor

BACKEND_URL = "http://testserver:5000"
HEALTH_URL = f"{BACKEND_URL}/api/health"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep developer LEARNASSIST_* variables out of the tests."""
    for name in (
        "LEARNASSIST_BACKEND_URL",
        "LEARNASSIST_API_PATH",
        "LEARNASSIST_TIMEOUT",
        "LEARNASSIST_DEBUG",
        "LEARNASSIST_PREFLIGHT_HEALTH_CHECK",
        "LEARNASSIST_SESSION_FILE",
    ):
        monkeypatch.delenv(name, raising=False)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, backend_url=BACKEND_URL, api_path="/api")


# ---------------------------------------------------------------------------
# Scripted transport for probe tests
# ---------------------------------------------------------------------------


class ScriptedTransport(httpx.MockTransport):
    """Answers each request with the next scripted outcome.

    Outcomes are HTTP status codes, exception instances (raised), or async
    callables taking the request. The last outcome repeats.
    """

    def __init__(self, outcomes: list[Any]) -> None:
        self.outcomes = list(outcomes)
        self.calls = 0
        super().__init__(self._handle)

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        index = min(self.calls, len(self.outcomes) - 1)
        self.calls += 1
        outcome = self.outcomes[index]
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return await outcome(request)
        return httpx.Response(outcome, json={"status": "ok" if outcome < 400 else "error"})


@pytest.fixture
def make_monitor(clock) -> Callable[..., tuple[HealthMonitor, ScriptedTransport]]:
    """Factory: HealthMonitor over a ScriptedTransport, driven by the fake clock."""

    def _make(outcomes: list[Any], **kwargs: Any) -> tuple[HealthMonitor, ScriptedTransport]:
        transport = ScriptedTransport(outcomes)
        http = httpx.AsyncClient(transport=transport)
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("rng", lambda: 0.5)
        return HealthMonitor(http, HEALTH_URL, **kwargs), transport

    return _make


# ---------------------------------------------------------------------------
# Fake learning-assistant backend
# ---------------------------------------------------------------------------


class FakeBackend:
    """Minimal stand-in for the backend API, served through ASGITransport."""

    VALID_TOKEN = "token-123"

    def __init__(self) -> None:
        self.health_status = 200
        self.health_calls = 0
        self.uploads: list[bytes] = []
        self.app = self._build_app()

    def _authorized(self, request: Request) -> bool:
        return request.headers.get("authorization") == f"Bearer {self.VALID_TOKEN}"

    def _build_app(self) -> FastAPI:
        app = FastAPI()

        @app.get("/health")
        async def root_health():
            return JSONResponse({"status": "ok"}, status_code=self.health_status)

        @app.get("/api/health")
        async def api_health():
            self.health_calls += 1
            return JSONResponse(
                {"status": "ok", "database": {"connected": self.health_status == 200}},
                status_code=self.health_status,
            )

        @app.post("/api/auth/login")
        async def login(request: Request):
            body = await request.json()
            if body.get("password") != "secret":
                return JSONResponse({"message": "Invalid credentials"}, status_code=400)
            return {
                "success": True,
                "token": self.VALID_TOKEN,
                "user": {"email": body["email"]},
            }

        @app.post("/api/auth/logout")
        async def logout():
            return {"success": True}

        @app.get("/api/auth/profile")
        async def profile(request: Request):
            if not self._authorized(request):
                return JSONResponse({"message": "Not authorized"}, status_code=401)
            return {"email": "student@example.com"}

        @app.get("/api/documents")
        async def documents(request: Request):
            if not self._authorized(request):
                return JSONResponse({"message": "Not authorized"}, status_code=401)
            return [{"_id": "doc-1", "title": "Testing Basics"}]

        @app.post("/api/documents")
        async def upload(request: Request):
            if not request.headers.get("content-type", "").startswith("multipart/form-data"):
                return JSONResponse({"message": "Expected multipart upload"}, status_code=400)
            self.uploads.append(await request.body())
            return JSONResponse({"_id": "doc-2"}, status_code=201)

        @app.post("/api/chat/{document_id}")
        async def chat(document_id: str, request: Request):
            body = await request.json()
            return {"success": True, "message": f"About {document_id}: {body['message']}"}

        @app.get("/api/chat/{document_id}")
        async def chat_history(document_id: str):
            return {"documentId": document_id, "messages": []}

        @app.get("/api/server-down")
        async def server_down():
            return JSONResponse({"message": "Database offline"}, status_code=503)

        @app.get("/api/server-bare")
        async def server_bare():
            return JSONResponse({}, status_code=500)

        @app.get("/api/missing")
        async def missing():
            return JSONResponse({"error": "nope"}, status_code=404)

        @app.get("/api/moved")
        async def moved():
            return JSONResponse({}, status_code=302, headers={"location": "/api/documents"})

        return app

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=self.app),
            base_url=f"{BACKEND_URL}/api",
        )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()
