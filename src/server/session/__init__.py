# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

"""Session persistence package providing SQLite-backed storage and the history API."""

from .dependencies import get_session_store
from .store import SQLiteSessionStore

__all__ = ["SQLiteSessionStore", "get_session_store"]
