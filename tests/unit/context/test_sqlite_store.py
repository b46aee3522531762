# tests/unit/context/test_sqlite_store.py
"""Tests for context/sqlite_store.py — durable slots and session re-attachment."""

from __future__ import annotations

import pytest

from storyloom.context.models import (
    ChatSessionSlot,
    ConversationContext,
    ResponseChainSlot,
)
from storyloom.context.session_registry import ChatSessionRegistry
from storyloom.context.sqlite_store import SqliteContextStore


def _context(**providers) -> ConversationContext:
    return ConversationContext(
        context_id="c1", story_id="s1", system_prompt="sys", providers=providers
    )


class TestSqliteContextStore:
    @pytest.mark.asyncio
    async def test_round_trip(self, tmp_path):
        store = SqliteContextStore(tmp_path / "ctx.db")
        await store.put(_context(openai=ResponseChainSlot(previous_response_id="r1")))
        ctx = await store.get("c1")
        assert ctx.providers["openai"].previous_response_id == "r1"
        store.close()

    @pytest.mark.asyncio
    async def test_response_chain_survives_restart(self, tmp_path):
        db = tmp_path / "ctx.db"
        store = SqliteContextStore(db)
        await store.put(
            _context(
                openai=ResponseChainSlot(previous_response_id="r1"),
                google=ChatSessionSlot(session=object()),
            )
        )
        store.close()

        reopened = SqliteContextStore(db)
        ctx = await reopened.get("c1")
        assert set(ctx.providers) == {"openai"}
        reopened.close()

    @pytest.mark.asyncio
    async def test_chat_session_reattached_in_process(self, tmp_path):
        sessions = ChatSessionRegistry()
        store = SqliteContextStore(tmp_path / "ctx.db", sessions=sessions)
        session = object()
        await store.put(_context(google=ChatSessionSlot(session=session)))
        ctx = await store.get("c1")
        assert ctx.providers["google"].session is session
        assert len(sessions) == 1
        store.close()

    @pytest.mark.asyncio
    async def test_replacing_chat_slot_discards_session(self, tmp_path):
        sessions = ChatSessionRegistry()
        store = SqliteContextStore(tmp_path / "ctx.db", sessions=sessions)
        await store.put(_context(google=ChatSessionSlot(session=object())))
        await store.put(_context(google=ResponseChainSlot(previous_response_id="r9")))
        ctx = await store.get("c1")
        assert isinstance(ctx.providers["google"], ResponseChainSlot)
        assert len(sessions) == 0
        store.close()

    @pytest.mark.asyncio
    async def test_delete(self, tmp_path):
        sessions = ChatSessionRegistry()
        store = SqliteContextStore(tmp_path / "ctx.db", sessions=sessions)
        await store.put(_context(google=ChatSessionSlot(session=object())))
        assert await store.delete("c1") is True
        assert await store.delete("c1") is False
        assert await store.get("c1") is None
        assert len(sessions) == 0
        store.close()

    @pytest.mark.asyncio
    async def test_list_skips_unreadable_rows(self, tmp_path):
        store = SqliteContextStore(tmp_path / "ctx.db")
        await store.put(_context())
        with store._conn:
            store._conn.execute(
                "INSERT INTO conversation_contexts VALUES (?, ?, ?, ?)",
                ("bad", "s2", '{"not": "a context"}', "2025-01-01T00:00:00+00:00"),
            )
        contexts = await store.list_contexts()
        assert [c.context_id for c in contexts] == ["c1"]
        store.close()
