# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

import httpx

from src.config.loader import get_str_env

from .errors import PersistenceFailure, SessionNotFound
from .models import Attachment, HistoryEntry, Message, Role, Session, ToolInvocation

logger = logging.getLogger(__name__)


class SessionApiClient:
    """HTTP client for the ``/api/sessions`` persistence API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ) -> None:
        self._base_url = base_url or get_str_env("SESSION_API_BASE_URL", "http://localhost:8000")
        self._client = client or httpx.AsyncClient(base_url=self._base_url, timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_sessions(self, user_key: str) -> list[HistoryEntry]:
        payload = await self._request("GET", "/api/sessions", params={"user_key": user_key})
        return [_to_entry(item) for item in payload["sessions"]]

    async def get_session(self, session_id: str) -> Session:
        payload = await self._request("GET", f"/api/sessions/{session_id}", session_id=session_id)
        return Session(
            id=payload["id"],
            created_at=datetime.fromisoformat(payload["created_at"]),
            messages=[_to_message(item, session_id) for item in payload.get("messages", [])],
        )

    async def delete_session(self, session_id: str) -> None:
        try:
            await self._request("DELETE", f"/api/sessions/{session_id}", session_id=session_id)
        except SessionNotFound:
            # Already gone on the server, which is what the caller asked for.
            logger.info("Session %s was already deleted", session_id)

    async def create_session(self, session_id: str, user_key: str) -> HistoryEntry:
        payload = await self._request(
            "POST",
            "/api/sessions",
            json={"id": session_id, "user_key": user_key},
            session_id=session_id,
        )
        return _to_entry(payload["session"])

    async def append_message(self, message: Message) -> None:
        await self._request(
            "POST",
            f"/api/sessions/{message.session_id}/messages",
            json=message.to_dict(),
            session_id=message.session_id,
        )

    async def _request(
        self,
        method: str,
        url: str,
        *,
        session_id: Optional[str] = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise PersistenceFailure(f"{method} {url} failed: {exc}", session_id=session_id) from exc
        if response.status_code == httpx.codes.NOT_FOUND and session_id is not None:
            raise SessionNotFound(session_id)
        if response.is_error:
            raise PersistenceFailure(
                f"{method} {url} returned {response.status_code}",
                session_id=session_id,
            )
        return response.json()


def _to_entry(data: dict[str, Any]) -> HistoryEntry:
    created_at = data.get("created_at")
    return HistoryEntry(
        id=data["id"],
        preview=data.get("preview") or "New Chat",
        created_at=datetime.fromisoformat(created_at) if created_at else None,
    )


def _to_message(data: dict[str, Any], session_id: str) -> Message:
    return Message(
        id=data["id"],
        role=Role(data["role"]),
        session_id=session_id,
        content=data.get("content", ""),
        attachments=tuple(Attachment.from_dict(item) for item in data.get("attachments") or []),
        tool_invocations=[ToolInvocation.from_dict(item) for item in data.get("toolInvocations") or []],
        frozen=True,
    )
