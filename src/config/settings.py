# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

from __future__ import annotations

from dataclasses import dataclass, field

from .loader import get_int_env, get_list_env, get_str_env

DEFAULT_MAX_ATTACHMENT_BYTES = 5 * 1024 * 1024
DEFAULT_ALLOWED_CONTENT_TYPES = ("image/jpeg", "image/png", "application/pdf")
DEFAULT_PREVIEW_LENGTH = 30
DEFAULT_URL_PREFIX = "/chat"


@dataclass(frozen=True, slots=True)
class ChatSettings:
    """Tunables of the chat core, read from the environment by ``from_env``."""

    max_attachment_bytes: int = DEFAULT_MAX_ATTACHMENT_BYTES
    allowed_content_types: tuple[str, ...] = field(default=DEFAULT_ALLOWED_CONTENT_TYPES)
    preview_length: int = DEFAULT_PREVIEW_LENGTH
    url_prefix: str = DEFAULT_URL_PREFIX

    @classmethod
    def from_env(cls) -> "ChatSettings":
        return cls(
            max_attachment_bytes=get_int_env("ATTACHMENT_MAX_BYTES", DEFAULT_MAX_ATTACHMENT_BYTES),
            allowed_content_types=tuple(
                get_list_env("ATTACHMENT_ALLOWED_TYPES", list(DEFAULT_ALLOWED_CONTENT_TYPES))
            ),
            preview_length=get_int_env("HISTORY_PREVIEW_LENGTH", DEFAULT_PREVIEW_LENGTH),
            url_prefix=get_str_env("CHAT_URL_PREFIX", DEFAULT_URL_PREFIX).rstrip("/") or DEFAULT_URL_PREFIX,
        )

    def canonical_url(self, session_id: str) -> str:
        return f"{self.url_prefix}/{session_id}"
