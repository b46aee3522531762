# tests/unit/ledger/test_ledger_contract.py
"""Behaviour shared by every Step Ledger backend (memory and sqlite)."""

from __future__ import annotations

import asyncio

import pytest

from storyloom.core.errors import NotFoundError
from storyloom.core.models import RunStatus, StepStatus
from storyloom.ledger.memory_ledger import MemoryStepLedger
from storyloom.ledger.sqlite_ledger import SqliteStepLedger


@pytest.fixture(params=["memory", "sqlite"])
def backend(request, tmp_path):
    if request.param == "memory":
        ledger = MemoryStepLedger()
    else:
        ledger = SqliteStepLedger(tmp_path / "workflows.db")
    yield ledger
    ledger.close()


class TestRuns:
    @pytest.mark.asyncio
    async def test_create_queued(self, backend):
        run = await backend.create_or_get_run("s1", metadata={"initiated_by": "cli"})
        assert run.status == RunStatus.QUEUED
        assert run.story_id == "s1"
        assert run.metadata == {"initiated_by": "cli"}
        assert (await backend.get_run(run.run_id)).run_id == run.run_id

    @pytest.mark.asyncio
    async def test_explicit_run_id(self, backend):
        run = await backend.create_or_get_run("s1", run_id="run-a")
        assert run.run_id == "run-a"
        again = await backend.create_or_get_run("s1", run_id="run-a")
        assert again.run_id == "run-a"

    @pytest.mark.asyncio
    async def test_returns_active_run_for_story(self, backend):
        first = await backend.create_or_get_run("s1")
        second = await backend.create_or_get_run("s1")
        assert first.run_id == second.run_id

    @pytest.mark.asyncio
    async def test_active_run_wins_over_requested_id(self, backend):
        first = await backend.create_or_get_run("s1", run_id="run-a")
        other = await backend.create_or_get_run("s1", run_id="run-b")
        assert other.run_id == first.run_id
        assert await backend.find_run("run-b") is None

    @pytest.mark.asyncio
    async def test_new_run_after_terminal(self, backend):
        first = await backend.create_or_get_run("s1")
        await backend.update_run(first.run_id, status=RunStatus.COMPLETED)
        second = await backend.create_or_get_run("s1")
        assert second.run_id != first.run_id
        assert second.status == RunStatus.QUEUED

    @pytest.mark.asyncio
    async def test_stories_are_independent(self, backend):
        a = await backend.create_or_get_run("s1")
        b = await backend.create_or_get_run("s2")
        assert a.run_id != b.run_id

    @pytest.mark.asyncio
    async def test_concurrent_create_converges(self, backend):
        runs = await asyncio.gather(*(backend.create_or_get_run("s1") for _ in range(5)))
        assert len({r.run_id for r in runs}) == 1

    @pytest.mark.asyncio
    async def test_update_merges(self, backend):
        run = await backend.create_or_get_run("s1", metadata={"a": 1})
        await backend.update_run(run.run_id, status=RunStatus.RUNNING, current_step="generate_outline")
        updated = await backend.update_run(run.run_id, metadata={"b": 2})
        assert updated.status == RunStatus.RUNNING
        assert updated.current_step == "generate_outline"
        assert updated.metadata == {"a": 1, "b": 2}
        assert updated.started_at is not None
        stored = await backend.get_run(run.run_id)
        assert stored.metadata == {"a": 1, "b": 2}

    @pytest.mark.asyncio
    async def test_failed_sets_error_and_end(self, backend):
        run = await backend.create_or_get_run("s1")
        failed = await backend.update_run(run.run_id, status=RunStatus.FAILED, error_message="x")
        assert failed.error_message == "x"
        assert failed.ended_at is not None

    @pytest.mark.asyncio
    async def test_completion_after_failure_clears_error(self, backend):
        run = await backend.create_or_get_run("s1")
        await backend.update_run(run.run_id, status=RunStatus.FAILED, error_message="x")
        await backend.update_run(run.run_id, status=RunStatus.COMPLETED, current_step="done")
        stored = await backend.get_run(run.run_id)
        assert stored.status == RunStatus.COMPLETED
        assert stored.error_message is None

    @pytest.mark.asyncio
    async def test_update_unknown_run(self, backend):
        with pytest.raises(NotFoundError, match="run not found: nope"):
            await backend.update_run("nope", status=RunStatus.RUNNING)

    @pytest.mark.asyncio
    async def test_get_unknown_run(self, backend):
        assert await backend.find_run("nope") is None
        with pytest.raises(NotFoundError):
            await backend.get_run("nope")


class TestSteps:
    @pytest.mark.asyncio
    async def test_upsert_single_row(self, backend):
        run = await backend.create_or_get_run("s1")
        await backend.store_step_result(run.run_id, "generate_outline", StepStatus.RUNNING)
        await backend.store_step_result(
            run.run_id, "generate_outline", StepStatus.COMPLETED, {"chapters": [1, 2]}
        )
        steps = await backend.get_run_steps(run.run_id)
        assert len(steps) == 1
        assert steps[0].status == StepStatus.COMPLETED
        assert steps[0].detail == {"chapters": [1, 2]}
        assert steps[0].started_at is not None
        assert steps[0].ended_at is not None

    @pytest.mark.asyncio
    async def test_replay_keeps_created_at(self, backend):
        run = await backend.create_or_get_run("s1")
        await backend.store_step_result(run.run_id, "assemble", StepStatus.FAILED, {"error": "x"})
        first = await backend.get_step_result(run.run_id, "assemble")
        await backend.store_step_result(run.run_id, "assemble", StepStatus.COMPLETED, {"url": "u"})
        second = await backend.get_step_result(run.run_id, "assemble")
        assert second.created_at == first.created_at
        assert second.status == StepStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_steps_scoped_to_run(self, backend):
        a = await backend.create_or_get_run("s1")
        b = await backend.create_or_get_run("s2")
        await backend.store_step_result(a.run_id, "write_chapter_1", StepStatus.COMPLETED, {})
        await backend.store_step_result(b.run_id, "write_chapter_1", StepStatus.COMPLETED, {})
        assert [s.run_id for s in await backend.get_run_steps(a.run_id)] == [a.run_id]

    @pytest.mark.asyncio
    async def test_steps_in_creation_order(self, backend):
        run = await backend.create_or_get_run("s1")
        for name in ("generate_outline", "write_chapter_1", "write_chapter_2"):
            await backend.store_step_result(run.run_id, name, StepStatus.COMPLETED, {})
            await asyncio.sleep(0.002)
        names = [s.step_name for s in await backend.get_run_steps(run.run_id)]
        assert names == ["generate_outline", "write_chapter_1", "write_chapter_2"]

    @pytest.mark.asyncio
    async def test_missing_step(self, backend):
        run = await backend.create_or_get_run("s1")
        assert await backend.find_step(run.run_id, "assemble") is None
        with pytest.raises(NotFoundError, match="step not found"):
            await backend.get_step_result(run.run_id, "assemble")

    @pytest.mark.asyncio
    async def test_empty_run_has_no_steps(self, backend):
        run = await backend.create_or_get_run("s1")
        assert await backend.get_run_steps(run.run_id) == []
