# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

"""Session orchestration core of the chat front-end."""

from .attachments import AttachmentBuffer, AttachmentCandidate
from .errors import (
    AlreadyResolved,
    ChatCoreError,
    PersistenceFailure,
    ProtocolViolation,
    SessionNotFound,
    UnknownInvocation,
    ValidationError,
)
from .history import HistoryStore
from .models import Attachment, HistoryEntry, Message, Notice, Role, Session, ToolInvocation, ToolKind, ToolState
from .reducer import CanonicalUrlAnnounced, MessageStreamReducer, TurnState
from .tools import ToolInvocationTracker, ToolView, render_variant

__all__ = [
    "AlreadyResolved",
    "Attachment",
    "AttachmentBuffer",
    "AttachmentCandidate",
    "CanonicalUrlAnnounced",
    "ChatCoreError",
    "HistoryEntry",
    "HistoryStore",
    "Message",
    "MessageStreamReducer",
    "Notice",
    "PersistenceFailure",
    "ProtocolViolation",
    "Role",
    "Session",
    "SessionNotFound",
    "ToolInvocation",
    "ToolInvocationTracker",
    "ToolKind",
    "ToolState",
    "ToolView",
    "TurnState",
    "UnknownInvocation",
    "ValidationError",
    "render_variant",
]
