# src/context/models.py
"""Conversation context types.

A context carries the system prompt for a story run plus one continuation
slot per provider key. Slots are a tagged union on ``kind``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

from storyloom.core.models import utcnow


class ChatSessionSlot(BaseModel):
    """Live in-process chat object (e.g. a Gemini ChatSession).

    Never serialised; does not survive a process restart.
    """

    kind: Literal["chat_session"] = "chat_session"
    session: Any = Field(default=None, exclude=True)


class ResponseChainSlot(BaseModel):
    """Durable server-side continuation token (e.g. OpenAI previous_response_id)."""

    kind: Literal["response_chain"] = "response_chain"
    previous_response_id: str


class StatelessSlot(BaseModel):
    """Provider keeps no continuation state; every call is self-contained."""

    kind: Literal["stateless"] = "stateless"


ProviderSlot = Annotated[
    Union[ChatSessionSlot, ResponseChainSlot, StatelessSlot],
    Field(discriminator="kind"),
]


class ConversationContext(BaseModel):
    """Provider-keyed continuation state for one story run."""

    context_id: str
    story_id: str
    system_prompt: str
    providers: dict[str, ProviderSlot] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def durable_copy(self) -> ConversationContext:
        """Copy without chat-session slots, for persistence."""
        return self.model_copy(
            update={
                "providers": {
                    key: slot
                    for key, slot in self.providers.items()
                    if not isinstance(slot, ChatSessionSlot)
                }
            }
        )


class ContextSummary(BaseModel):
    context_id: str
    story_id: str
    updated_at: datetime


class ContextStats(BaseModel):
    """Snapshot of the contexts held by a store."""

    total_contexts: int = 0
    contexts: list[ContextSummary] = Field(default_factory=list)


def context_id_for(story_id: str, run_id: str) -> str:
    """Conventional context id for a story run: ``<story_id>-<run_id>``."""
    return f"{story_id}-{run_id}"
