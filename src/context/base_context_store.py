# src/context/base_context_store.py
"""Abstract conversation context store."""

from __future__ import annotations

from abc import ABC, abstractmethod

from storyloom.context.models import ChatSessionSlot, ConversationContext
from storyloom.context.session_registry import ChatSessionRegistry


class BaseContextStore(ABC):
    """Unified interface for context storage backends."""

    @abstractmethod
    async def get(self, context_id: str) -> ConversationContext | None:
        """Retrieve a context by id."""

    @abstractmethod
    async def put(self, context: ConversationContext) -> None:
        """Store a context (upsert)."""

    @abstractmethod
    async def delete(self, context_id: str) -> bool:
        """Remove a context; returns whether it existed."""

    @abstractmethod
    async def list_contexts(self) -> list[ConversationContext]:
        """List all stored contexts."""


class DurableContextStore(BaseContextStore):
    """Base for stores that serialise contexts.

    Chat-session slots are split off into a process-local registry on
    write and re-attached on read.
    """

    def __init__(self, sessions: ChatSessionRegistry | None = None) -> None:
        self._sessions = sessions if sessions is not None else ChatSessionRegistry()

    def _detach_sessions(self, context: ConversationContext) -> ConversationContext:
        for key, slot in context.providers.items():
            if isinstance(slot, ChatSessionSlot):
                self._sessions.put(context.context_id, key, slot.session)
            else:
                self._sessions.discard(context.context_id, key)
        return context.durable_copy()

    def _attach_sessions(self, context: ConversationContext) -> ConversationContext:
        live = self._sessions.get_all(context.context_id)
        if not live:
            return context
        providers = dict(context.providers)
        for key, session in live.items():
            providers[key] = ChatSessionSlot(session=session)
        return context.model_copy(update={"providers": providers})
