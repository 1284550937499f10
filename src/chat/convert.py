# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

from __future__ import annotations

import json
from typing import Any, Iterable

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, ToolMessage

from .models import Message, Role, ToolState


def _human_content(message: Message) -> Any:
    if not message.attachments:
        return message.content
    parts: list[dict[str, Any]] = []
    if message.text:
        parts.append({"type": "text", "text": message.text})
    for attachment in message.attachments:
        if attachment.content_type.startswith("image/"):
            parts.append({"type": "image_url", "image_url": {"url": attachment.url}})
        else:
            parts.append({"type": "text", "text": f"[file:{attachment.name}]({attachment.url})"})
    return parts


def _stringify_result(result: Any) -> str:
    if isinstance(result, str):
        return result
    try:
        return json.dumps(result, ensure_ascii=False)
    except TypeError:
        return str(result)


def to_langchain_messages(messages: Iterable[Message]) -> list[BaseMessage]:
    """Export a session log as chat-model input for the assistant collaborator.

    Cancelled tool calls are left out, since they have no result to pair with.
    """
    converted: list[BaseMessage] = []
    for message in messages:
        if message.role is Role.USER:
            converted.append(HumanMessage(content=_human_content(message), id=message.id))
            continue

        resolved = [call for call in message.tool_invocations if call.state is ToolState.RESULT]
        converted.append(
            AIMessage(
                content=message.text,
                id=message.id,
                tool_calls=[
                    {"id": call.tool_call_id, "name": call.tool_name, "args": {}}
                    for call in resolved
                ],
            )
        )
        for call in resolved:
            converted.append(
                ToolMessage(
                    content=_stringify_result(call.result),
                    tool_call_id=call.tool_call_id,
                    name=call.tool_name,
                )
            )
    return converted
