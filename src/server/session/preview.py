# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

from __future__ import annotations

import logging
from typing import Iterable, Optional

from src.chat.models import derive_preview
from src.config.settings import ChatSettings

from .models import MessageRecord
from .store import SQLiteSessionStore

logger = logging.getLogger(__name__)


async def ensure_session_preview(store: SQLiteSessionStore, session_id: str) -> Optional[str]:
    """Derive and persist the sidebar preview if one does not already exist."""
    if await store.session_has_preview(session_id):
        return None

    messages = await store.get_messages(session_id, limit=4)
    if not messages:
        logger.debug("Session %s has no messages yet; skipping preview", session_id)
        return None

    preview = _derive_from_messages(messages)
    await store.update_session_preview(session_id, preview)
    return preview


def _derive_from_messages(messages: Iterable[MessageRecord]) -> str:
    limit = ChatSettings.from_env().preview_length
    for message in messages:
        if message.role == "user":
            return derive_preview(message.content, limit)
    return "New Chat"
