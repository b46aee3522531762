# tests/unit/handlers/conftest.py
"""Fixtures shared by the step handler tests."""

from __future__ import annotations

import pytest

from storyloom.core.models import StepStatus


@pytest.fixture
def seed_run(ledger, story_id, outline_factory):
    """Create a run, optionally with a completed outline and written chapters."""

    async def _seed(chapters: int = 3, written: tuple[int, ...] = (), outline: bool = True) -> str:
        run = await ledger.create_or_get_run(story_id)
        if outline:
            await ledger.store_step_result(
                run.run_id, "generate_outline", StepStatus.COMPLETED, outline_factory(chapters)
            )
        for n in written:
            await ledger.store_step_result(
                run.run_id,
                f"write_chapter_{n}",
                StepStatus.COMPLETED,
                {"chapter_number": n, "chapter_title": f"Written title {n}", "chapter": f"Text of chapter {n}."},
            )
        return run.run_id

    return _seed
