# src/context/memory_store.py
"""In-process context store (CONTEXT_BACKEND=memory).

Keeps chat-session objects directly on the slots.
"""

from __future__ import annotations

from storyloom.context.base_context_store import BaseContextStore
from storyloom.context.models import ConversationContext


def _copy(context: ConversationContext) -> ConversationContext:
    # Shallow: chat session objects must stay the same instance
    return context.model_copy(update={"providers": dict(context.providers)})


class MemoryContextStore(BaseContextStore):
    """Dict-backed context store."""

    def __init__(self) -> None:
        self._contexts: dict[str, ConversationContext] = {}

    async def get(self, context_id: str) -> ConversationContext | None:
        context = self._contexts.get(context_id)
        return _copy(context) if context else None

    async def put(self, context: ConversationContext) -> None:
        self._contexts[context.context_id] = _copy(context)

    async def delete(self, context_id: str) -> bool:
        return self._contexts.pop(context_id, None) is not None

    async def list_contexts(self) -> list[ConversationContext]:
        return [_copy(c) for c in self._contexts.values()]
