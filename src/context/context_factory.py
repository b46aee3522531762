# src/context/context_factory.py
"""Factory for context store instantiation."""

from __future__ import annotations

from storyloom.config.settings import Settings
from storyloom.context.base_context_store import BaseContextStore
from storyloom.context.session_registry import ChatSessionRegistry


def create_context_store(
    settings: Settings | None = None,
    sessions: ChatSessionRegistry | None = None,
) -> BaseContextStore:
    """Instantiate the configured context backend.

    Args:
        settings: Application settings. Defaults to the memory backend.
        sessions: Registry for live chat sessions (durable backends only).

    Returns:
        Configured BaseContextStore implementation.
    """
    backend = "memory" if settings is None else settings.context_backend

    if backend == "memory":
        from storyloom.context.memory_store import MemoryContextStore
        return MemoryContextStore()

    if backend == "sqlite":
        from storyloom.context.sqlite_store import SqliteContextStore
        return SqliteContextStore(
            db_path=settings.context_sqlite_path,  # type: ignore[union-attr]
            sessions=sessions,
        )

    if backend == "redis":
        from storyloom.context.redis_store import RedisContextStore
        if settings is None or not settings.context_redis_url:
            raise ValueError(
                "CONTEXT_REDIS_URL must be set when CONTEXT_BACKEND=redis"
            )
        return RedisContextStore(
            redis_url=settings.context_redis_url,
            sessions=sessions,
            ttl_s=settings.context_max_age_hours * 3600,
        )

    raise ValueError(f"Unsupported context backend: {backend!r}")
