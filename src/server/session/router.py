# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from .dependencies import get_session_store
from .models import MessageRecord, SessionRecord
from .preview import ensure_session_preview
from .schemas import (
    DeleteResponse,
    MessageAppendRequest,
    SessionCreateRequest,
    SessionCreateResponse,
    SessionDetail,
    SessionListResponse,
    SessionMessage,
    SessionSummary,
)
from .store import SQLiteSessionStore

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.get("", response_model=SessionListResponse)
async def list_sessions(
    user_key: str = Query(min_length=1, description="Owner whose history is listed."),
    store: SQLiteSessionStore = Depends(get_session_store),
) -> SessionListResponse:
    records = await store.list_sessions(user_key)
    return SessionListResponse(sessions=[_to_summary(record) for record in records])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=SessionCreateResponse)
async def create_session(
    payload: SessionCreateRequest,
    store: SQLiteSessionStore = Depends(get_session_store),
) -> SessionCreateResponse:
    session = await store.create_session(user_key=payload.user_key, session_id=payload.id)
    if session.user_key != payload.user_key:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Session id already in use")
    if payload.initial_message:
        await store.append_message(
            session_id=session.id,
            role="user",
            content=payload.initial_message.strip(),
        )
        await ensure_session_preview(store, session.id)
        session = await store.get_session(session.id) or session
    messages = await store.get_messages(session.id)
    return SessionCreateResponse(session=_to_detail(session, messages))


@router.get("/{session_id}", response_model=SessionDetail)
async def get_session(
    session_id: str,
    store: SQLiteSessionStore = Depends(get_session_store),
) -> SessionDetail:
    session = await store.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    messages = await store.get_messages(session_id)
    return _to_detail(session, messages)


@router.post("/{session_id}/messages", status_code=status.HTTP_201_CREATED, response_model=SessionMessage)
async def append_message(
    session_id: str,
    payload: MessageAppendRequest,
    store: SQLiteSessionStore = Depends(get_session_store),
) -> SessionMessage:
    session = await store.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    record = await store.append_message(
        session_id=session_id,
        role=payload.role,
        content=payload.content,
        message_id=payload.id,
        attachments=[item.model_dump(by_alias=True) for item in payload.attachments],
        tool_invocations=[item.model_dump(by_alias=True) for item in payload.tool_invocations],
    )
    await ensure_session_preview(store, session_id)
    return _to_message(record)


@router.delete("/{session_id}", response_model=DeleteResponse)
async def delete_session(
    session_id: str,
    store: SQLiteSessionStore = Depends(get_session_store),
) -> DeleteResponse:
    session = await store.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    await store.delete_session(session_id)
    return DeleteResponse(success=True)


def _to_summary(record: SessionRecord) -> SessionSummary:
    return SessionSummary(
        id=record.id,
        preview=record.preview,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _to_message(record: MessageRecord) -> SessionMessage:
    return SessionMessage(
        id=record.id,
        role=record.role,
        content=record.content,
        attachments=record.attachments,
        tool_invocations=record.tool_invocations,
        seq=record.seq,
        created_at=record.created_at,
    )


def _to_detail(session: SessionRecord, messages: list[MessageRecord]) -> SessionDetail:
    return SessionDetail(
        **_to_summary(session).model_dump(),
        messages=[_to_message(message) for message in messages],
    )
