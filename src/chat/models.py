# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"

    def __str__(self) -> str:
        return self.value


class ToolState(str, Enum):
    PENDING = "pending"
    RESULT = "result"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value


class ToolKind(str, Enum):
    """Known tools the assistant may call, plus a fallback for anything else."""

    GET_WEATHER = "getWeather"
    DISPLAY_FLIGHT_STATUS = "displayFlightStatus"
    SEARCH_FLIGHTS = "searchFlights"
    SELECT_SEATS = "selectSeats"
    CREATE_RESERVATION = "createReservation"
    AUTHORIZE_PAYMENT = "authorizePayment"
    VERIFY_PAYMENT = "verifyPayment"
    DISPLAY_BOARDING_PASS = "displayBoardingPass"
    UNKNOWN = "unknown"

    @classmethod
    def from_name(cls, tool_name: str) -> "ToolKind":
        try:
            kind = cls(tool_name)
        except ValueError:
            return cls.UNKNOWN
        return kind

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class Attachment:
    url: str
    name: str
    content_type: str

    def to_dict(self) -> dict[str, str]:
        return {"url": self.url, "name": self.name, "contentType": self.content_type}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Attachment":
        return cls(
            url=data["url"],
            name=data.get("name", ""),
            content_type=data.get("contentType") or data.get("content_type", ""),
        )


@dataclass(slots=True)
class ToolInvocation:
    tool_call_id: str
    tool_name: str
    state: ToolState = ToolState.PENDING
    result: Optional[Any] = None

    @property
    def kind(self) -> ToolKind:
        return ToolKind.from_name(self.tool_name)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "toolCallId": self.tool_call_id,
            "toolName": self.tool_name,
            "state": self.state.value,
        }
        if self.state is ToolState.RESULT:
            data["result"] = self.result
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolInvocation":
        return cls(
            tool_call_id=data["toolCallId"],
            tool_name=data["toolName"],
            state=ToolState(data.get("state", ToolState.PENDING.value)),
            result=data.get("result"),
        )


@dataclass(slots=True)
class Message:
    id: str
    role: Role
    session_id: str
    content: Any = ""
    attachments: tuple[Attachment, ...] = ()
    tool_invocations: list[ToolInvocation] = field(default_factory=list)
    frozen: bool = False

    @property
    def text(self) -> str:
        return self.content if isinstance(self.content, str) else ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "attachments": [attachment.to_dict() for attachment in self.attachments],
            "toolInvocations": [invocation.to_dict() for invocation in self.tool_invocations],
        }


@dataclass(slots=True)
class Session:
    id: str
    created_at: datetime
    messages: list[Message] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    id: str
    preview: str
    created_at: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class Notice:
    """Transient user-facing notice, e.g. a toast."""

    level: str
    message: str


def log_notice(notice: Notice) -> None:
    """Default notice sink when no UI is attached."""
    logger.log(logging.ERROR if notice.level == "error" else logging.INFO, "%s", notice.message)


def derive_preview(content: Any, limit: int) -> str:
    """Leading text of a message, cut to ``limit`` characters."""
    text = content.strip() if isinstance(content, str) else ""
    if not text:
        return "New Chat"
    return text[:limit]
