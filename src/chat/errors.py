# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

"""Error taxonomy of the chat session core."""

from __future__ import annotations

from typing import Any


class ChatCoreError(Exception):
    """Base class for all chat core errors."""


class ValidationError(ChatCoreError):
    """Raised when an attachment candidate is rejected by the buffer."""

    def __init__(self, message: str, reason: str, limit: Any = None):
        super().__init__(message)
        self.reason = reason
        self.limit = limit


class ProtocolViolation(ChatCoreError):
    """Raised for malformed or out-of-order assistant stream events."""


class UnknownInvocation(ChatCoreError):
    """Raised when a result arrives for a tool call that was never registered."""

    def __init__(self, tool_call_id: str):
        super().__init__(f"Unknown tool call {tool_call_id!r}")
        self.tool_call_id = tool_call_id


class AlreadyResolved(ChatCoreError):
    """Raised when a tool call that already left PENDING is resolved again."""

    def __init__(self, tool_call_id: str, state: str):
        super().__init__(f"Tool call {tool_call_id!r} is already {state}")
        self.tool_call_id = tool_call_id
        self.state = state


class PersistenceFailure(ChatCoreError):
    """Raised when the persistence collaborator fails to load or delete."""

    def __init__(self, message: str, session_id: str | None = None):
        super().__init__(message)
        self.session_id = session_id


class SessionNotFound(ChatCoreError):
    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id!r} not found")
        self.session_id = session_id
