# src/stories/story_factory.py
"""Factory for story record store instantiation."""

from __future__ import annotations

from storyloom.config.settings import Settings
from storyloom.stories.base_story_store import BaseStoryStore


def create_story_store(settings: Settings | None = None) -> BaseStoryStore:
    """Instantiate the configured story store backend."""
    backend = "memory" if settings is None else settings.story_backend

    if backend == "memory":
        from storyloom.stories.memory_store import MemoryStoryStore
        return MemoryStoryStore()

    if backend == "sqlite":
        from storyloom.stories.sqlite_store import SqliteStoryStore
        return SqliteStoryStore(db_path=settings.story_sqlite_path)  # type: ignore[union-attr]

    raise ValueError(f"Unsupported story backend: {backend!r}")
