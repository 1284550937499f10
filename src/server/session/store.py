# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional
from uuid import uuid4

from .models import MessageRecord, SessionRecord

logger = logging.getLogger(__name__)


_SESSIONS_DDL = """
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    user_key TEXT NOT NULL,
    preview TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""

_MESSAGES_DDL = """
CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL,
    role TEXT NOT NULL CHECK(role IN ('user', 'assistant')),
    content TEXT NOT NULL,
    attachments TEXT NOT NULL DEFAULT '[]',
    tool_invocations TEXT NOT NULL DEFAULT '[]',
    seq INTEGER NOT NULL,
    created_at TEXT NOT NULL,
    FOREIGN KEY(session_id) REFERENCES sessions(id) ON DELETE CASCADE
);
"""

_CREATE_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_sessions_user_created ON sessions(user_key, created_at DESC);",
    "CREATE INDEX IF NOT EXISTS idx_messages_session_seq ON messages(session_id, seq);",
]

_SESSION_COLUMNS = "id, user_key, preview, created_at, updated_at"
_MESSAGE_COLUMNS = "id, session_id, role, content, attachments, tool_invocations, seq, created_at"


def _ensure_pragmas(connection: sqlite3.Connection) -> None:
    connection.execute("PRAGMA foreign_keys = ON;")
    connection.execute("PRAGMA journal_mode = WAL;")


class SQLiteSessionStore:
    """SQLite-backed repository for chat sessions and their messages."""

    def __init__(self, db_path: str) -> None:
        path = Path(db_path)
        if not path.is_absolute():
            path = Path.cwd() / path
        if path.suffix != ".db":
            path = path.with_suffix(".db")
        self._db_path = str(path)
        self._write_lock = asyncio.Lock()

    @property
    def db_path(self) -> str:
        return self._db_path

    async def init(self) -> None:
        """Initialise database schema."""
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        def _init() -> None:
            with sqlite3.connect(self._db_path) as connection:
                _ensure_pragmas(connection)
                connection.execute(_SESSIONS_DDL)
                connection.execute(_MESSAGES_DDL)
                for statement in _CREATE_INDEXES:
                    connection.execute(statement)
                connection.commit()

        await asyncio.to_thread(_init)
        logger.info("Session database initialised at %s", self._db_path)

    async def create_session(self, *, user_key: str, session_id: Optional[str] = None) -> SessionRecord:
        """Create a session, or return the existing one when the id is already stored.

        Clients allocate session ids before the first message is sent, so a
        retried create must not fail or duplicate the session.
        """
        session_id = session_id or uuid4().hex
        now = _utc_now_str()

        async with self._write_lock:
            await asyncio.to_thread(
                self._execute,
                f"INSERT OR IGNORE INTO sessions ({_SESSION_COLUMNS}) VALUES (?, ?, ?, ?, ?)",
                (session_id, user_key, None, now, now),
            )

        session = await self.get_session(session_id)
        if session is None:
            raise RuntimeError(f"Session {session_id} missing after create")
        logger.info("Created session %s for %s", session_id, user_key)
        return session

    async def list_sessions(self, user_key: str) -> list[SessionRecord]:
        rows = await asyncio.to_thread(
            self._fetchall,
            f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE user_key = ? "
            "ORDER BY created_at DESC, rowid DESC",
            (user_key,),
        )
        return [self._row_to_session(row) for row in rows]

    async def get_session(self, session_id: str) -> Optional[SessionRecord]:
        row = await asyncio.to_thread(
            self._fetchone,
            f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE id = ?",
            (session_id,),
        )
        return self._row_to_session(row) if row else None

    async def get_messages(self, session_id: str, *, limit: Optional[int] = None) -> list[MessageRecord]:
        query = f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE session_id = ? ORDER BY seq ASC"
        params: tuple[Any, ...] = (session_id,)
        if limit is not None:
            query += " LIMIT ?"
            params = (session_id, limit)
        rows = await asyncio.to_thread(self._fetchall, query, params)
        return [self._row_to_message(row) for row in rows]

    async def append_message(
        self,
        *,
        session_id: str,
        role: str,
        content: Any,
        message_id: Optional[str] = None,
        attachments: Optional[Iterable[dict[str, Any]]] = None,
        tool_invocations: Optional[Iterable[dict[str, Any]]] = None,
    ) -> MessageRecord:
        """Append a message; re-sending a stored message id returns the stored record."""
        message_id = message_id or uuid4().hex
        now = _utc_now_str()
        content_json = json.dumps(content, ensure_ascii=False)
        attachments_list = list(attachments or [])
        invocations_list = list(tool_invocations or [])

        async with self._write_lock:

            def _insert() -> Optional[sqlite3.Row]:
                with sqlite3.connect(self._db_path) as connection:
                    connection.row_factory = sqlite3.Row
                    _ensure_pragmas(connection)

                    existing = connection.execute(
                        f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE id = ?",
                        (message_id,),
                    ).fetchone()
                    if existing is not None:
                        return existing

                    cursor = connection.execute(
                        "SELECT COALESCE(MAX(seq), 0) AS max_seq FROM messages WHERE session_id = ?",
                        (session_id,),
                    )
                    next_seq = int(cursor.fetchone()["max_seq"] or 0) + 1

                    connection.execute(
                        f"INSERT INTO messages ({_MESSAGE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                        (
                            message_id,
                            session_id,
                            role,
                            content_json,
                            json.dumps(attachments_list, ensure_ascii=False),
                            json.dumps(invocations_list, ensure_ascii=False),
                            next_seq,
                            now,
                        ),
                    )
                    connection.execute(
                        "UPDATE sessions SET updated_at = ? WHERE id = ?",
                        (now, session_id),
                    )
                    connection.commit()
                    return connection.execute(
                        f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE id = ?",
                        (message_id,),
                    ).fetchone()

            row = await asyncio.to_thread(_insert)

        if row is None:
            raise RuntimeError(f"Message {message_id} missing after insert")
        return self._row_to_message(row)

    async def session_has_preview(self, session_id: str) -> bool:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT preview FROM sessions WHERE id = ?",
            (session_id,),
        )
        return bool(row and row["preview"])

    async def update_session_preview(self, session_id: str, preview: str) -> None:
        async with self._write_lock:
            await asyncio.to_thread(
                self._execute,
                "UPDATE sessions SET preview = ? WHERE id = ?",
                (preview, session_id),
            )

    async def delete_session(self, session_id: str) -> None:
        async with self._write_lock:
            await asyncio.to_thread(
                self._execute,
                "DELETE FROM sessions WHERE id = ?",
                (session_id,),
            )
        logger.info("Deleted session %s", session_id)

    def _execute(self, query: str, params: tuple = ()) -> None:
        with sqlite3.connect(self._db_path) as connection:
            _ensure_pragmas(connection)
            connection.execute(query, params)
            connection.commit()

    def _fetchall(self, query: str, params: tuple = ()) -> list[sqlite3.Row]:
        with sqlite3.connect(self._db_path) as connection:
            connection.row_factory = sqlite3.Row
            _ensure_pragmas(connection)
            cursor = connection.execute(query, params)
            return cursor.fetchall()

    def _fetchone(self, query: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        with sqlite3.connect(self._db_path) as connection:
            connection.row_factory = sqlite3.Row
            _ensure_pragmas(connection)
            cursor = connection.execute(query, params)
            return cursor.fetchone()

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> SessionRecord:
        return SessionRecord(
            id=row["id"],
            user_key=row["user_key"],
            preview=row["preview"],
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )

    @staticmethod
    def _row_to_message(row: sqlite3.Row) -> MessageRecord:
        return MessageRecord(
            id=row["id"],
            session_id=row["session_id"],
            role=row["role"],
            content=json.loads(row["content"]),
            attachments=json.loads(row["attachments"]),
            tool_invocations=json.loads(row["tool_invocations"]),
            seq=row["seq"],
            created_at=_parse_ts(row["created_at"]),
        )


def _utc_now_str() -> str:
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat(timespec="microseconds") + "Z"


def _parse_ts(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1]
    return datetime.fromisoformat(value)
