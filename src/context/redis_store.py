# src/context/redis_store.py
"""Redis-based context store (CONTEXT_BACKEND=redis).

Requires 'redis' package: pip install redis.
Suitable for multi-instance deployments sharing response-chain tokens.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from storyloom.context.base_context_store import DurableContextStore
from storyloom.context.models import ConversationContext
from storyloom.context.session_registry import ChatSessionRegistry
from storyloom.core.errors import TransientPersistenceError

logger = logging.getLogger(__name__)

_KEY_PREFIX = "storyloom:context:"
_INDEX_KEY = "storyloom:context:__index__"


class RedisContextStore(DurableContextStore):
    """Redis-backed context store."""

    def __init__(
        self,
        redis_url: str,
        sessions: ChatSessionRegistry | None = None,
        ttl_s: int | None = None,
    ) -> None:
        super().__init__(sessions)
        try:
            import redis
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e

        self._client = redis.Redis.from_url(redis_url, decode_responses=True)
        self._transient_errors: tuple[type[Exception], ...] = (
            redis.exceptions.ConnectionError,
            redis.exceptions.TimeoutError,
        )
        self._ttl_s = ttl_s

    def _wrap(self, e: Exception) -> TransientPersistenceError:
        return TransientPersistenceError(f"redis context store unavailable: {e}")

    async def get(self, context_id: str) -> ConversationContext | None:
        try:
            data = self._client.get(f"{_KEY_PREFIX}{context_id}")
        except self._transient_errors as e:
            raise self._wrap(e) from e
        if data is None:
            self._sessions.drop_context(context_id)
            return None
        return self._attach_sessions(ConversationContext.model_validate_json(data))

    async def put(self, context: ConversationContext) -> None:
        durable = self._detach_sessions(context)
        key = f"{_KEY_PREFIX}{durable.context_id}"
        try:
            self._client.set(key, durable.model_dump_json(), ex=self._ttl_s)
            self._client.sadd(_INDEX_KEY, durable.context_id)
        except self._transient_errors as e:
            raise self._wrap(e) from e

    async def delete(self, context_id: str) -> bool:
        self._sessions.drop_context(context_id)
        try:
            removed = self._client.delete(f"{_KEY_PREFIX}{context_id}")
            self._client.srem(_INDEX_KEY, context_id)
        except self._transient_errors as e:
            raise self._wrap(e) from e
        return bool(removed)

    async def list_contexts(self) -> list[ConversationContext]:
        try:
            context_ids = self._client.smembers(_INDEX_KEY)
        except self._transient_errors as e:
            raise self._wrap(e) from e

        contexts: list[ConversationContext] = []
        for context_id in sorted(context_ids):
            data = self._client.get(f"{_KEY_PREFIX}{context_id}")
            if data is None:
                # Expired by TTL; prune the index and any parked sessions
                self._client.srem(_INDEX_KEY, context_id)
                self._sessions.drop_context(context_id)
                continue
            try:
                contexts.append(
                    self._attach_sessions(ConversationContext.model_validate_json(data))
                )
            except ValidationError as e:
                logger.warning("Skipping unreadable context %s: %s", context_id, e)
        return contexts
