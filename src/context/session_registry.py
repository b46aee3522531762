# src/context/session_registry.py
"""Process-local registry of live chat sessions.

Durable context stores cannot persist chat objects, so they park them here
keyed by (context_id, provider_key) and re-attach them on load. After a
restart the registry is empty and the slot is simply absent.
"""

from __future__ import annotations

from typing import Any


class ChatSessionRegistry:
    """Holds chat-session objects for the lifetime of the process."""

    def __init__(self) -> None:
        self._sessions: dict[tuple[str, str], Any] = {}

    def put(self, context_id: str, provider_key: str, session: Any) -> None:
        self._sessions[(context_id, provider_key)] = session

    def get_all(self, context_id: str) -> dict[str, Any]:
        """All sessions for a context, keyed by provider key."""
        return {
            key: session
            for (cid, key), session in self._sessions.items()
            if cid == context_id
        }

    def discard(self, context_id: str, provider_key: str) -> None:
        self._sessions.pop((context_id, provider_key), None)

    def drop_context(self, context_id: str) -> None:
        for key in [k for k in self._sessions if k[0] == context_id]:
            del self._sessions[key]

    def __len__(self) -> int:
        return len(self._sessions)
