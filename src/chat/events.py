# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as SchemaError

from .errors import ProtocolViolation


class _StreamEvent(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class ContentDelta(_StreamEvent):
    type: Literal["content-delta"] = "content-delta"
    text: Any = ""
    replace: bool = False


class ToolCallRegistered(_StreamEvent):
    type: Literal["tool-call-registered"] = "tool-call-registered"
    tool_call_id: str = Field(alias="toolCallId")
    tool_name: str = Field(alias="toolName")


class ToolCallResolved(_StreamEvent):
    type: Literal["tool-call-resolved"] = "tool-call-resolved"
    tool_call_id: str = Field(alias="toolCallId")
    result: Any = None


class TurnFinished(_StreamEvent):
    type: Literal["turn-finished"] = "turn-finished"


StreamEvent = Annotated[
    Union[ContentDelta, ToolCallRegistered, ToolCallResolved, TurnFinished],
    Field(discriminator="type"),
]

_EVENT_ADAPTER: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)


def parse_event(payload: dict[str, Any] | str) -> StreamEvent:
    """Build a stream event from its wire form (a dict or a JSON string)."""
    try:
        if isinstance(payload, str):
            payload = json.loads(payload)
        return _EVENT_ADAPTER.validate_python(payload)
    except (SchemaError, ValueError) as exc:
        raise ProtocolViolation(f"Malformed stream event: {exc}") from exc


def parse_sse_frame(frame: str) -> StreamEvent | None:
    """Parse one ``event: ...\\ndata: ...`` server-sent-event frame.

    Returns None for frames without a data line (keep-alives).
    """
    event_type = None
    data_lines: list[str] = []
    for line in frame.splitlines():
        if line.startswith("event:"):
            event_type = line[len("event:") :].strip()
        elif line.startswith("data:"):
            data_lines.append(line[len("data:") :].strip())
    if not data_lines:
        return None
    try:
        data = json.loads("\n".join(data_lines))
    except ValueError as exc:
        raise ProtocolViolation(f"Malformed stream frame: {exc}") from exc
    if not isinstance(data, dict):
        raise ProtocolViolation(f"Stream frame data must be an object, got {type(data).__name__}")
    if event_type and "type" not in data:
        data["type"] = event_type
    return parse_event(data)
