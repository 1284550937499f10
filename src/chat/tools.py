# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .errors import AlreadyResolved, ProtocolViolation, UnknownInvocation
from .models import ToolInvocation, ToolKind, ToolState

logger = logging.getLogger(__name__)


class ToolInvocationTracker:
    """Registry of the tool calls made during one session.

    Ids are unique within the tracker's lifetime; an invocation leaves
    PENDING exactly once, either by ``resolve`` or ``cancel_pending``.
    """

    def __init__(self) -> None:
        self._calls: dict[str, ToolInvocation] = {}

    def __contains__(self, tool_call_id: str) -> bool:
        return tool_call_id in self._calls

    def get(self, tool_call_id: str) -> Optional[ToolInvocation]:
        return self._calls.get(tool_call_id)

    def adopt(self, invocation: ToolInvocation) -> None:
        """Track an invocation loaded from a persisted session.

        Loaded messages are frozen, so a call saved while still pending can
        no longer complete and is adopted as cancelled.
        """
        if invocation.state is ToolState.PENDING:
            invocation.state = ToolState.CANCELLED
        self._calls[invocation.tool_call_id] = invocation

    def register_call(self, tool_call_id: str, tool_name: str) -> ToolInvocation:
        if tool_call_id in self._calls:
            raise ProtocolViolation(f"Tool call {tool_call_id!r} registered twice")
        invocation = ToolInvocation(tool_call_id=tool_call_id, tool_name=tool_name)
        self._calls[tool_call_id] = invocation
        return invocation

    def resolve(self, tool_call_id: str, result: Any) -> ToolInvocation:
        invocation = self._calls.get(tool_call_id)
        if invocation is None:
            raise UnknownInvocation(tool_call_id)
        if invocation.state is not ToolState.PENDING:
            raise AlreadyResolved(tool_call_id, invocation.state.value)
        invocation.state = ToolState.RESULT
        invocation.result = result
        return invocation

    def cancel_pending(self) -> list[ToolInvocation]:
        cancelled: list[ToolInvocation] = []
        for invocation in self._calls.values():
            if invocation.state is ToolState.PENDING:
                invocation.state = ToolState.CANCELLED
                cancelled.append(invocation)
        if cancelled:
            logger.info("Cancelled %d pending tool call(s)", len(cancelled))
        return cancelled


# Payment verification has no loading placeholder; it only shows its result.
_NO_SKELETON = frozenset({ToolKind.VERIFY_PAYMENT, ToolKind.UNKNOWN})


class ToolView(str, Enum):
    SKELETON = "skeleton"
    RESULT = "result"
    RAW_JSON = "raw_json"
    SUPPRESSED = "suppressed"
    CANCELLED = "cancelled"
    NONE = "none"


@dataclass(frozen=True, slots=True)
class ToolRendering:
    view: ToolView
    kind: ToolKind
    payload: Any = None


def is_suppressed(invocation: ToolInvocation) -> bool:
    """A failed reservation renders nothing instead of a reservation card."""
    return (
        invocation.kind is ToolKind.CREATE_RESERVATION
        and invocation.state is ToolState.RESULT
        and isinstance(invocation.result, dict)
        and "error" in invocation.result
    )


def render_variant(invocation: ToolInvocation) -> ToolRendering:
    kind = invocation.kind
    if invocation.state is ToolState.CANCELLED:
        return ToolRendering(ToolView.CANCELLED, kind)
    if invocation.state is ToolState.PENDING:
        if kind in _NO_SKELETON:
            return ToolRendering(ToolView.NONE, kind)
        return ToolRendering(ToolView.SKELETON, kind)
    if kind is ToolKind.UNKNOWN:
        return ToolRendering(ToolView.RAW_JSON, kind, invocation.result)
    if is_suppressed(invocation):
        return ToolRendering(ToolView.SUPPRESSED, kind)
    return ToolRendering(ToolView.RESULT, kind, invocation.result)
