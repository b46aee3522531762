# src/stories/sqlite_store.py
"""SQLite-backed story record store (STORY_BACKEND=sqlite).

Only the columns the workflow core touches are modelled.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from storyloom.core.errors import NotFoundError, TransientPersistenceError
from storyloom.core.models import StoryRecord, utcnow
from storyloom.stories.base_story_store import BaseStoryStore

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS stories (
    story_id TEXT PRIMARY KEY,
    title TEXT NOT NULL DEFAULT '',
    chapter_count INTEGER,
    completion_percentage INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'draft',
    cover_uri TEXT,
    back_cover_uri TEXT,
    updated_at TEXT NOT NULL
);
"""

_COLUMNS = (
    "story_id, title, chapter_count, completion_percentage, status, "
    "cover_uri, back_cover_uri, updated_at"
)


class SqliteStoryStore(BaseStoryStore):
    """SQLite story records."""

    def __init__(self, db_path: Path | str) -> None:
        if str(db_path) == ":memory:":
            target = ":memory:"
        else:
            path = Path(db_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            target = str(path)
        self._conn = sqlite3.connect(target)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    @contextmanager
    def _guard(self) -> Iterator[None]:
        try:
            yield
        except sqlite3.OperationalError as e:
            raise TransientPersistenceError(f"sqlite story store unavailable: {e}") from e

    async def get_story(self, story_id: str) -> StoryRecord | None:
        with self._guard():
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM stories WHERE story_id = ?", (story_id,)
            ).fetchone()
        return StoryRecord(**dict(row)) if row else None

    async def save_story(self, story: StoryRecord) -> None:
        with self._guard(), self._conn:
            self._conn.execute(
                f"INSERT OR REPLACE INTO stories ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    story.story_id,
                    story.title,
                    story.chapter_count,
                    story.completion_percentage,
                    story.status,
                    story.cover_uri,
                    story.back_cover_uri,
                    story.updated_at.isoformat(),
                ),
            )

    async def update_completion_percentage(self, story_id: str, percentage: int) -> None:
        self._update(story_id, completion_percentage=percentage)

    async def update_status(self, story_id: str, status: str) -> None:
        self._update(story_id, status=status)

    async def update_cover_uris(
        self,
        story_id: str,
        cover_uri: str | None = None,
        back_cover_uri: str | None = None,
    ) -> None:
        fields: dict[str, Any] = {}
        if cover_uri is not None:
            fields["cover_uri"] = cover_uri
        if back_cover_uri is not None:
            fields["back_cover_uri"] = back_cover_uri
        if fields:
            self._update(story_id, **fields)

    def _update(self, story_id: str, **fields: Any) -> None:
        fields["updated_at"] = utcnow().isoformat()
        assignments = ", ".join(f"{name} = ?" for name in fields)
        with self._guard(), self._conn:
            cursor = self._conn.execute(
                f"UPDATE stories SET {assignments} WHERE story_id = ?",
                (*fields.values(), story_id),
            )
        if cursor.rowcount == 0:
            raise NotFoundError("story", story_id)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
