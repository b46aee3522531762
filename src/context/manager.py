# src/context/manager.py
"""Conversation context manager.

Owns the lifecycle of per-run conversation contexts on top of a
BaseContextStore. Each provider key's slot is updated independently.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from storyloom.context.base_context_store import BaseContextStore
from storyloom.context.models import (
    ContextStats,
    ContextSummary,
    ConversationContext,
    ProviderSlot,
)
from storyloom.core.errors import NotFoundError
from storyloom.core.models import utcnow

logger = logging.getLogger(__name__)


class ContextManager:
    """Create, read, update and expire conversation contexts."""

    def __init__(self, store: BaseContextStore) -> None:
        self._store = store

    @property
    def store(self) -> BaseContextStore:
        return self._store

    async def initialize_context(
        self, context_id: str, story_id: str, system_prompt: str
    ) -> ConversationContext:
        """Create the context, or refresh the system prompt of an existing one.

        Existing provider slots are kept.
        """
        existing = await self._store.get(context_id)
        now = utcnow()
        if existing is not None:
            context = existing.model_copy(
                update={"system_prompt": system_prompt, "updated_at": now}
            )
            logger.info(
                "Context re-initialized: %s (providers kept: %s)",
                context_id, ", ".join(sorted(context.providers)) or "none",
            )
        else:
            context = ConversationContext(
                context_id=context_id,
                story_id=story_id,
                system_prompt=system_prompt,
                created_at=now,
                updated_at=now,
            )
            logger.info(
                "Context initialized: %s (system prompt %d chars)",
                context_id, len(system_prompt),
            )
        await self._store.put(context)
        return context

    async def get_context(self, context_id: str) -> ConversationContext | None:
        context = await self._store.get(context_id)
        if context is None:
            logger.debug("Context not found: %s", context_id)
        return context

    async def update_provider_data(
        self, context_id: str, provider_key: str, slot: ProviderSlot
    ) -> None:
        """Replace one provider's slot; other slots are untouched.

        Raises:
            NotFoundError: If the context does not exist.
        """
        context = await self._store.get(context_id)
        if context is None:
            logger.error("Cannot update provider data: context not found: %s", context_id)
            raise NotFoundError("context", context_id)
        providers = dict(context.providers)
        providers[provider_key] = slot
        await self._store.put(
            context.model_copy(update={"providers": providers, "updated_at": utcnow()})
        )
        logger.debug("Provider slot updated: %s/%s (%s)", context_id, provider_key, slot.kind)

    async def clear_context(self, context_id: str) -> None:
        """Remove a context and any continuation state it holds."""
        if await self._store.delete(context_id):
            logger.info("Context cleared: %s", context_id)
        else:
            logger.warning("Context not found when clearing: %s", context_id)

    async def cleanup_old_contexts(self, max_age_hours: float = 24) -> int:
        """Delete contexts not updated within ``max_age_hours``; returns the count."""
        cutoff = utcnow() - timedelta(hours=max_age_hours)
        removed = 0
        for context in await self._store.list_contexts():
            if context.updated_at < cutoff:
                if await self._store.delete(context.context_id):
                    removed += 1
        if removed:
            logger.info(
                "Old contexts cleaned up: %d removed (max age %sh)", removed, max_age_hours
            )
        return removed

    async def get_stats(self) -> ContextStats:
        contexts = await self._store.list_contexts()
        return ContextStats(
            total_contexts=len(contexts),
            contexts=[
                ContextSummary(
                    context_id=c.context_id,
                    story_id=c.story_id,
                    updated_at=c.updated_at,
                )
                for c in contexts
            ],
        )
