# tests/unit/logging/test_unit_context.py
"""Tests for logging/context.py — contextvars snapshot and reset."""

from __future__ import annotations

import asyncio

import pytest

from storyloom.logging.context import (
    LogContext,
    clear_context,
    get_context,
    set_provider_context,
    set_run_context,
    set_step_context,
)


class TestLogContext:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_empty_by_default(self):
        assert get_context().as_dict() == {}

    def test_run_context(self):
        set_run_context("story-1", "run-1")
        ctx = get_context()
        assert ctx.story_id == "story-1"
        assert ctx.run_id == "run-1"
        assert ctx.step is None

    def test_step_context_resets_provider(self):
        set_step_context("write_chapter_1", provider="openai")
        set_step_context("assemble")
        ctx = get_context()
        assert ctx.step == "assemble"
        assert ctx.provider is None

    def test_provider_context_keeps_step(self):
        set_step_context("write_chapter_3")
        set_provider_context("google")
        ctx = get_context()
        assert ctx.step == "write_chapter_3"
        assert ctx.provider == "google"

    def test_as_dict_omits_none(self):
        assert LogContext(run_id="r").as_dict() == {"run_id": "r"}

    def test_clear(self):
        set_run_context("s", "r")
        set_step_context("done", provider="x")
        clear_context()
        assert get_context().as_dict() == {}

    @pytest.mark.asyncio
    async def test_tasks_are_isolated(self):
        async def worker(run_id: str) -> str | None:
            set_run_context("story", run_id)
            await asyncio.sleep(0)
            return get_context().run_id

        results = await asyncio.gather(worker("a"), worker("b"))
        assert results == ["a", "b"]
        assert get_context().run_id is None
