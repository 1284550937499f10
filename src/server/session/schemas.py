# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AttachmentPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    name: str = ""
    content_type: str = Field(default="", alias="contentType")


class ToolInvocationPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tool_call_id: str = Field(alias="toolCallId")
    tool_name: str = Field(alias="toolName")
    state: Literal["pending", "result", "cancelled"] = "pending"
    result: Optional[Any] = None


class SessionMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    role: Literal["user", "assistant"]
    content: Any = ""
    attachments: list[AttachmentPayload] = Field(default_factory=list)
    tool_invocations: list[ToolInvocationPayload] = Field(default_factory=list, alias="toolInvocations")
    seq: int
    created_at: datetime


class SessionSummary(BaseModel):
    id: str
    preview: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class SessionDetail(SessionSummary):
    messages: list[SessionMessage] = Field(default_factory=list)


class SessionCreateRequest(BaseModel):
    id: Optional[str] = Field(default=None, description="Client-allocated session id.")
    user_key: str = Field(min_length=1, description="Owner of the session.")
    initial_message: Optional[str] = Field(
        default=None,
        description="Optional initial user message to seed the session.",
    )

    @field_validator("id")
    @classmethod
    def validate_id(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not value:
            return None
        if len(value) > 64:
            raise ValueError("Session id must be 64 characters or fewer")
        return value


class SessionCreateResponse(BaseModel):
    session: SessionDetail


class SessionListResponse(BaseModel):
    sessions: list[SessionSummary]


class MessageAppendRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    role: Literal["user", "assistant"]
    content: Any = ""
    attachments: list[AttachmentPayload] = Field(default_factory=list)
    tool_invocations: list[ToolInvocationPayload] = Field(default_factory=list, alias="toolInvocations")


class DeleteResponse(BaseModel):
    success: bool
