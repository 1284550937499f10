# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

from __future__ import annotations

import logging
from typing import Any, AsyncIterable, Callable, Optional, Protocol
from uuid import uuid4

from src.config.settings import ChatSettings

from .attachments import AttachmentBuffer
from .errors import PersistenceFailure, SessionNotFound
from .history import HistoryStore, SessionPersistence
from .models import HistoryEntry, Message, Notice, log_notice
from .reducer import CanonicalUrlAnnounced, MessageStreamReducer, TurnState

logger = logging.getLogger(__name__)


class SessionWriter(Protocol):
    async def create_session(self, session_id: str, user_key: str) -> HistoryEntry: ...

    async def append_message(self, message: Message) -> None: ...


class ChatPersistence(SessionPersistence, SessionWriter, Protocol):
    pass


class ChatSession:
    """Wires input composition, the stream reducer and the history sidebar together.

    Messages of a turn are written to the persistence collaborator once the
    turn finishes; a new session shows up in history only after that write
    is acknowledged.
    """

    def __init__(
        self,
        persistence: ChatPersistence,
        history: HistoryStore,
        user_key: str,
        *,
        session_id: Optional[str] = None,
        initial_messages: Optional[list[Message]] = None,
        settings: Optional[ChatSettings] = None,
        on_navigate: Optional[Callable[[str], None]] = None,
        notify: Callable[[Notice], None] = log_notice,
    ) -> None:
        self._persistence = persistence
        self._history = history
        self._user_key = user_key
        self._settings = settings or ChatSettings.from_env()
        self._on_navigate = on_navigate
        self._notify = notify
        self._announcement: Optional[CanonicalUrlAnnounced] = None
        self._durable = bool(initial_messages)
        self._persisted_ids: set[str] = {message.id for message in initial_messages or ()}
        self.attachments = AttachmentBuffer(self._settings)
        self.reducer = MessageStreamReducer(
            session_id or uuid4().hex,
            initial_messages=initial_messages,
            settings=self._settings,
            on_announce=self._handle_announce,
            notify=notify,
        )

    @classmethod
    async def load(
        cls,
        persistence: ChatPersistence,
        history: HistoryStore,
        user_key: str,
        session_id: str,
        **kwargs: Any,
    ) -> "ChatSession":
        """Open a stored session, seeding the reducer with its messages."""
        try:
            stored = await persistence.get_session(session_id)
        except (SessionNotFound, PersistenceFailure) as exc:
            logger.warning("Failed to load session %s: %s", session_id, exc)
            kwargs.get("notify", log_notice)(Notice(level="error", message="Failed to load chat"))
            raise
        return cls(
            persistence,
            history,
            user_key,
            session_id=stored.id,
            initial_messages=stored.messages,
            **kwargs,
        )

    @property
    def session_id(self) -> str:
        return self.reducer.session_id

    @property
    def durable(self) -> bool:
        return self._durable

    def submit(self, content: Any) -> Message:
        attachments = self.attachments.flush()
        return self.reducer.append_user_message(content, attachments)

    def stop(self) -> None:
        self.reducer.stop()

    async def run_turn(self, source: AsyncIterable[Any]) -> None:
        """Consume one assistant turn, then persist it and reconcile history."""
        try:
            await self.reducer.consume(source)
        finally:
            if self.reducer.state is TurnState.IDLE:
                await self._persist_turn()

    async def _persist_turn(self) -> None:
        unsaved = [message for message in self.reducer.messages if message.id not in self._persisted_ids]
        if not unsaved:
            return
        try:
            if not self._durable:
                entry = await self._persistence.create_session(self.session_id, self._user_key)
                self._durable = True
            else:
                entry = None
            for message in unsaved:
                await self._persistence.append_message(message)
                self._persisted_ids.add(message.id)
        except (PersistenceFailure, SessionNotFound) as exc:
            logger.warning("Failed to persist session %s: %s", self.session_id, exc)
            self._notify(Notice(level="error", message="Failed to save chat"))
            return

        if entry is not None:
            self._history.add_confirmed(entry)
        if self._announcement is not None and self._on_navigate is not None:
            url, self._announcement = self._announcement.url, None
            self._on_navigate(url)
        try:
            await self._history.refresh()
        except PersistenceFailure as exc:
            logger.warning("History refresh failed: %s", exc)

    def _handle_announce(self, announcement: CanonicalUrlAnnounced) -> None:
        self._announcement = announcement
