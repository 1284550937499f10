# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


@dataclass(slots=True)
class SessionRecord:
    id: str
    user_key: str
    preview: Optional[str]
    created_at: datetime
    updated_at: datetime


@dataclass(slots=True)
class MessageRecord:
    id: str
    session_id: str
    role: str
    content: Any
    seq: int
    created_at: datetime
    attachments: list[dict[str, Any]] = field(default_factory=list)
    tool_invocations: list[dict[str, Any]] = field(default_factory=list)
