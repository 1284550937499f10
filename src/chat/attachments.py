# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from src.config.settings import ChatSettings

from .errors import ValidationError
from .models import Attachment

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AttachmentCandidate:
    """A file picked by the user, already uploaded or about to be."""

    url: str
    name: str
    content_type: str
    size: int


class AttachmentBuffer:
    """Attachments selected for the next outgoing message."""

    def __init__(self, settings: Optional[ChatSettings] = None) -> None:
        self._settings = settings or ChatSettings.from_env()
        self._items: list[Attachment] = []
        self._uploading: list[str] = []

    @property
    def items(self) -> tuple[Attachment, ...]:
        return tuple(self._items)

    @property
    def is_uploading(self) -> bool:
        return bool(self._uploading)

    def validate(self, candidate: AttachmentCandidate) -> None:
        limit = self._settings.max_attachment_bytes
        if candidate.size > limit:
            raise ValidationError(
                f"File size should be less than {limit // (1024 * 1024)}MB",
                reason="size",
                limit=limit,
            )
        allowed = self._settings.allowed_content_types
        if candidate.content_type not in allowed:
            raise ValidationError(
                "File type should be one of " + ", ".join(allowed),
                reason="type",
                limit=allowed,
            )

    def add(self, candidate: AttachmentCandidate) -> Attachment:
        self.validate(candidate)
        attachment = Attachment(url=candidate.url, name=candidate.name, content_type=candidate.content_type)
        self._items.append(attachment)
        logger.debug("Attachment %s admitted (%d bytes)", candidate.name, candidate.size)
        return attachment

    def remove(self, url: str) -> None:
        self._items = [item for item in self._items if item.url != url]

    def begin_upload(self, name: str) -> None:
        self._uploading.append(name)

    def end_upload(self, name: str) -> None:
        if name in self._uploading:
            self._uploading.remove(name)

    def flush(self) -> tuple[Attachment, ...]:
        """Drain the buffer and hand its attachments over to the caller."""
        if self._uploading:
            raise ValidationError(
                "Please wait for uploads to finish",
                reason="uploading",
                limit=len(self._uploading),
            )
        drained = tuple(self._items)
        self._items = []
        return drained
