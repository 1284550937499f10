# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

"""Client-side view of the session history sidebar.

Deletes are optimistic: the entry disappears at once and comes back only if
the persistence collaborator rejects the delete. Each optimistic removal is
recorded in a compensating-action log together with its undo, so a failed
delete restores exactly what it removed.

The store is owned by a single event loop; it mutates its view only between
awaits and exposes no locks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from .errors import PersistenceFailure
from .models import HistoryEntry, Notice, Session, log_notice

logger = logging.getLogger(__name__)


class SessionPersistence(Protocol):
    async def list_sessions(self, user_key: str) -> list[HistoryEntry]: ...

    async def delete_session(self, session_id: str) -> None: ...

    async def get_session(self, session_id: str) -> Session: ...


@dataclass(frozen=True, slots=True)
class _Removal:
    """Undo record of one optimistic removal."""

    entry: Optional[HistoryEntry]
    predecessor_id: Optional[str]


class HistoryStore:
    def __init__(
        self,
        persistence: SessionPersistence,
        user_key: str,
        *,
        notify: Callable[[Notice], None] = log_notice,
    ) -> None:
        self._persistence = persistence
        self._user_key = user_key
        self._notify = notify
        self._entries: list[HistoryEntry] = []
        self._listing: list[HistoryEntry] = []
        self._pending: dict[str, _Removal] = {}
        self._tombstones: dict[str, int] = {}
        self._clock = 0

    def list(self) -> list[HistoryEntry]:
        return list(self._entries)

    def ids(self) -> list[str]:
        return [entry.id for entry in self._entries]

    @property
    def hidden(self) -> frozenset[str]:
        """Ids currently hidden by an in-flight delete."""
        return frozenset(self._pending)

    async def refresh(self) -> list[HistoryEntry]:
        """Replace the view with the server listing, keeping in-flight deletes hidden."""
        self._clock += 1
        issued_at = self._clock
        listing = await self._persistence.list_sessions(self._user_key)

        for session_id, confirmed_at in list(self._tombstones.items()):
            if confirmed_at < issued_at:
                # This listing was requested after the delete was confirmed.
                del self._tombstones[session_id]

        self._listing = list(listing)
        self._entries = [
            entry
            for entry in listing
            if entry.id not in self._pending and entry.id not in self._tombstones
        ]
        logger.debug("History refreshed: %d entries, %d hidden", len(self._entries), len(self._pending))
        return self.list()

    def add_confirmed(self, entry: HistoryEntry) -> None:
        """Show a session the server has acknowledged as persisted."""
        if entry.id in self._pending or entry.id in self._tombstones:
            return
        if any(existing.id == entry.id for existing in self._entries):
            return
        self._entries.insert(0, entry)

    async def request_delete(self, session_id: str) -> None:
        if session_id in self._pending:
            logger.debug("Delete of %s already in flight", session_id)
            return

        self._pending[session_id] = self._remove_locally(session_id)
        self._notify(Notice(level="info", message="Deleting chat..."))
        try:
            await self._persistence.delete_session(session_id)
        except Exception as exc:
            self._compensate(session_id)
            logger.warning("Failed to delete session %s: %s", session_id, exc)
            self._notify(Notice(level="error", message="Failed to delete chat"))
            if isinstance(exc, PersistenceFailure):
                raise
            raise PersistenceFailure(str(exc) or "Failed to delete chat", session_id=session_id) from exc

        self._pending.pop(session_id, None)
        self._clock += 1
        self._tombstones[session_id] = self._clock
        logger.info("Session %s deleted", session_id)
        self._notify(Notice(level="info", message="Chat deleted successfully"))

    def _remove_locally(self, session_id: str) -> _Removal:
        for index, entry in enumerate(self._entries):
            if entry.id == session_id:
                del self._entries[index]
                predecessor = self._entries[index - 1].id if index > 0 else None
                return _Removal(entry=entry, predecessor_id=predecessor)
        return _Removal(entry=None, predecessor_id=None)

    def _compensate(self, session_id: str) -> None:
        removal = self._pending.pop(session_id, None)
        if removal is None:
            return
        entry = removal.entry
        if entry is None:
            # Never shown locally; restore it only if the server still lists it.
            entry = next((item for item in self._listing if item.id == session_id), None)
            if entry is None:
                return
        if any(existing.id == session_id for existing in self._entries):
            return

        position = 0
        if removal.predecessor_id is not None:
            for index, existing in enumerate(self._entries):
                if existing.id == removal.predecessor_id:
                    position = index + 1
                    break
        self._entries.insert(position, entry)
