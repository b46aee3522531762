# src/context/sqlite_store.py
"""SQLite-based context store (CONTEXT_BACKEND=sqlite).

Uses stdlib sqlite3. Response-chain tokens survive restarts; chat sessions
do not.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from pydantic import ValidationError

from storyloom.context.base_context_store import DurableContextStore
from storyloom.context.models import ConversationContext
from storyloom.context.session_registry import ChatSessionRegistry
from storyloom.core.errors import TransientPersistenceError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS conversation_contexts (
    context_id TEXT PRIMARY KEY,
    story_id TEXT NOT NULL,
    data TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class SqliteContextStore(DurableContextStore):
    """SQLite-backed context store."""

    def __init__(
        self,
        db_path: Path | str,
        sessions: ChatSessionRegistry | None = None,
    ) -> None:
        super().__init__(sessions)
        if str(db_path) == ":memory:":
            target = ":memory:"
        else:
            path = Path(db_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            target = str(path)
        self._conn = sqlite3.connect(target)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    @contextmanager
    def _guard(self) -> Iterator[None]:
        try:
            yield
        except sqlite3.OperationalError as e:
            raise TransientPersistenceError(f"sqlite context store unavailable: {e}") from e

    async def get(self, context_id: str) -> ConversationContext | None:
        with self._guard():
            row = self._conn.execute(
                "SELECT data FROM conversation_contexts WHERE context_id = ?",
                (context_id,),
            ).fetchone()
        if row is None:
            return None
        return self._attach_sessions(ConversationContext.model_validate_json(row[0]))

    async def put(self, context: ConversationContext) -> None:
        durable = self._detach_sessions(context)
        with self._guard(), self._conn:
            self._conn.execute(
                """INSERT OR REPLACE INTO conversation_contexts
                   (context_id, story_id, data, updated_at) VALUES (?, ?, ?, ?)""",
                (
                    durable.context_id,
                    durable.story_id,
                    durable.model_dump_json(),
                    durable.updated_at.isoformat(),
                ),
            )

    async def delete(self, context_id: str) -> bool:
        self._sessions.drop_context(context_id)
        with self._guard(), self._conn:
            cursor = self._conn.execute(
                "DELETE FROM conversation_contexts WHERE context_id = ?", (context_id,)
            )
        return cursor.rowcount > 0

    async def list_contexts(self) -> list[ConversationContext]:
        with self._guard():
            rows = self._conn.execute("SELECT context_id, data FROM conversation_contexts").fetchall()
        contexts: list[ConversationContext] = []
        for context_id, data in rows:
            try:
                contexts.append(
                    self._attach_sessions(ConversationContext.model_validate_json(data))
                )
            except ValidationError as e:
                logger.warning("Skipping unreadable context %s: %s", context_id, e)
        return contexts

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
