"""Endpoint helpers for the learning-assistant backend.

Thin coroutines over ``ApiClient``; paths are relative to the API root.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, BinaryIO

from learnassist.client import ApiClient

# ---- Auth ----


async def login(client: ApiClient, email: str, password: str) -> dict[str, Any]:
    """Log in and store the returned token and user in the session."""
    data = await client.post("/auth/login", {"email": email, "password": password})
    token = data.get("token") if isinstance(data, dict) else None
    if token:
        client.session.save(token, data.get("user"))
    return data


async def register(client: ApiClient, user_data: dict[str, Any]) -> dict[str, Any]:
    data = await client.post("/auth/signup", user_data)
    token = data.get("token") if isinstance(data, dict) else None
    if token:
        client.session.save(token, data.get("user"))
    return data


async def logout(client: ApiClient) -> Any:
    try:
        return await client.post("/auth/logout")
    finally:
        client.session.clear()


async def get_profile(client: ApiClient) -> dict[str, Any]:
    return await client.get("/auth/profile")


# ---- Documents ----


async def list_documents(client: ApiClient) -> list[dict[str, Any]]:
    return await client.get("/documents")


async def get_document(client: ApiClient, document_id: str) -> dict[str, Any]:
    return await client.get(f"/documents/{document_id}")


async def upload_document(
    client: ApiClient,
    file: str | Path | BinaryIO,
    *,
    title: str | None = None,
    filename: str | None = None,
    content_type: str = "application/pdf",
) -> dict[str, Any]:
    """Upload a document as multipart form data (field ``file``)."""
    form = {"title": title} if title else None
    if isinstance(file, (str, Path)):
        path = Path(file)
        with path.open("rb") as fh:
            files = {"file": (filename or path.name, fh, content_type)}
            return await client.request("POST", "/documents", data=form, files=files)
    files = {"file": (filename or "document", file, content_type)}
    return await client.request("POST", "/documents", data=form, files=files)


async def delete_document(client: ApiClient, document_id: str) -> Any:
    return await client.delete(f"/documents/{document_id}")


# ---- Chat ----


async def send_chat_message(client: ApiClient, document_id: str, message: str) -> dict[str, Any]:
    """Ask the AI model about a document."""
    return await client.post(f"/chat/{document_id}", {"message": message})


async def get_chat_history(client: ApiClient, document_id: str) -> dict[str, Any]:
    return await client.get(f"/chat/{document_id}")


async def clear_chat_history(client: ApiClient, document_id: str) -> Any:
    return await client.delete(f"/chat/{document_id}")
