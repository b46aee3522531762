# tests/unit/progress/test_estimator.py
"""Tests for progress/estimator.py — chapter count resolution, progress and updates."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from storyloom.core.errors import NotFoundError, TransientPersistenceError
from storyloom.core.models import RunStatus, StepStatus, StoryRecord
from storyloom.progress.estimator import PUBLISHED_STATUS, ProgressEstimator, describe
from storyloom.progress.single_flight import SingleFlightGuard


@pytest.fixture
def seed_run(ledger, story_id, outline_factory):
    """Create a run whose outline step completed with ``chapters`` chapters."""

    async def _seed(chapters: int = 5) -> str:
        run = await ledger.create_or_get_run(story_id)
        await ledger.store_step_result(
            run.run_id, "generate_outline", StepStatus.COMPLETED, outline_factory(chapters)
        )
        return run.run_id

    return _seed


class TestChapterCount:
    @pytest.mark.asyncio
    async def test_from_outline_chapters(self, progress, seed_run):
        run_id = await seed_run(5)
        assert await progress.get_chapter_count(run_id) == 5

    @pytest.mark.asyncio
    async def test_from_outline_content(self, ledger, progress, story_id):
        run = await ledger.create_or_get_run(story_id)
        await ledger.store_step_result(
            run.run_id,
            "generate_outline",
            StepStatus.COMPLETED,
            {"content": "Chapter 1: Snow\nChapter 2: Lantern\nchapter 3: Home"},
        )
        assert await progress.get_chapter_count(run.run_id) == 3

    @pytest.mark.asyncio
    async def test_from_story_record(self, ledger, progress, story_id):
        run = await ledger.create_or_get_run(story_id)
        assert await progress.get_chapter_count(run.run_id) == 3

    @pytest.mark.asyncio
    async def test_default_when_unknown(self, ledger, stories, chapter_cache):
        await stories.save_story(StoryRecord(story_id="bare"))
        estimator = ProgressEstimator(ledger, stories, cache=chapter_cache)
        run = await ledger.create_or_get_run("bare")
        assert await estimator.get_chapter_count(run.run_id) == 4
        assert chapter_cache.get(run.run_id) == 4

    @pytest.mark.asyncio
    async def test_lookup_error_caches_default(self, ledger, stories, chapter_cache):
        estimator = ProgressEstimator(ledger, stories, cache=chapter_cache)
        with patch.object(ledger, "find_step", AsyncMock(side_effect=RuntimeError("db down"))):
            assert await estimator.get_chapter_count("r-x") == 4
        assert chapter_cache.get("r-x") == 4

    @pytest.mark.asyncio
    async def test_cached_value_skips_ledger(self, ledger, progress, chapter_cache):
        chapter_cache.set("r1", 7)
        with patch.object(ledger, "find_step", AsyncMock()) as find_step:
            assert await progress.get_chapter_count("r1") == 7
        find_step.assert_not_awaited()


class TestCalculateProgress:
    @pytest.mark.asyncio
    async def test_three_of_five_chapters(self, ledger, progress, chapter_cache, story_id):
        run = await ledger.create_or_get_run(story_id)
        chapter_cache.set(run.run_id, 5)
        for n in (1, 2, 3):
            await ledger.store_step_result(
                run.run_id, f"write_chapter_{n}", StepStatus.COMPLETED, {"chapter": "x"}
            )
        await ledger.update_run(run.run_id, status=RunStatus.RUNNING, current_step="write_chapter_4")

        result = await progress.calculate_progress(run.run_id)

        assert result.total_estimated_time == 441
        assert result.elapsed_time == 75
        assert result.completed_percentage == 17
        assert result.remaining_time == 366
        assert result.current_step == "write_chapter_4"
        assert result.total_steps == 16
        assert result.chapter_count == 5

    @pytest.mark.asyncio
    async def test_ignores_non_completed_steps(self, ledger, progress, seed_run):
        run_id = await seed_run(5)
        await ledger.store_step_result(run_id, "write_chapter_1", StepStatus.RUNNING)
        await ledger.store_step_result(run_id, "write_chapter_2", StepStatus.FAILED, {"error": "x"})
        result = await progress.calculate_progress(run_id)
        assert result.completed_steps == ["generate_outline"]
        assert result.completed_percentage == 3

    @pytest.mark.asyncio
    async def test_unknown_current_step(self, ledger, progress, story_id):
        run = await ledger.create_or_get_run(story_id)
        assert (await progress.calculate_progress(run.run_id)).current_step == "unknown"

    @pytest.mark.asyncio
    async def test_repeat_without_new_steps_is_stable(self, ledger, progress, seed_run):
        run_id = await seed_run(5)
        await ledger.store_step_result(run_id, "write_chapter_1", StepStatus.COMPLETED, {})
        first = await progress.calculate_progress(run_id)
        second = await progress.calculate_progress(run_id)
        assert first == second

    @pytest.mark.asyncio
    async def test_never_decreases_over_full_run(self, ledger, progress, seed_run):
        run_id = await seed_run(5)
        sequence = (
            [f"write_chapter_{n}" for n in range(1, 6)]
            + ["generate_front_cover", "generate_back_cover"]
            + [f"generate_image_chapter_{n}" for n in range(1, 6)]
            + ["assemble", "generate_audiobook", "done"]
        )
        previous = (await progress.calculate_progress(run_id)).completed_percentage
        seen = [previous]
        for step_name in sequence:
            await ledger.store_step_result(run_id, step_name, StepStatus.COMPLETED, {})
            current = (await progress.calculate_progress(run_id)).completed_percentage
            again = (await progress.calculate_progress(run_id)).completed_percentage
            assert current == again
            assert current >= previous
            previous = current
            seen.append(current)
        assert seen[0] == 3
        assert seen[-1] == 100
        assert all(0 <= p <= 100 for p in seen)

    @pytest.mark.asyncio
    async def test_missing_run(self, progress):
        with pytest.raises(NotFoundError):
            await progress.calculate_progress("nope")

    @pytest.mark.asyncio
    async def test_describe(self, progress, seed_run):
        run_id = await seed_run(5)
        summary = describe(await progress.calculate_progress(run_id))
        assert summary["chapters"] == 5
        assert summary["completed"] == 1
        assert summary["total_steps"] == 16


class TestUpdateStoryProgress:
    @pytest.mark.asyncio
    async def test_writes_percentage(self, stories, progress, seed_run, story_id):
        run_id = await seed_run(5)
        update = await progress.update_story_progress(run_id)
        assert update.completed_percentage == 3
        assert not update.published
        story = await stories.get_story(story_id)
        assert story.completion_percentage == 3
        assert story.status == "draft"

    @pytest.mark.asyncio
    async def test_completed_done_is_published(self, ledger, stories, progress, seed_run, story_id):
        run_id = await seed_run(5)
        await ledger.update_run(run_id, status=RunStatus.COMPLETED, current_step="done")
        update = await progress.update_story_progress(run_id)
        assert update.completed_percentage == 100
        assert update.published
        story = await stories.get_story(story_id)
        assert story.completion_percentage == 100
        assert story.status == PUBLISHED_STATUS

    @pytest.mark.asyncio
    async def test_completed_but_not_done_not_forced(self, ledger, progress, seed_run):
        run_id = await seed_run(5)
        await ledger.update_run(run_id, status=RunStatus.COMPLETED, current_step="assemble")
        update = await progress.update_story_progress(run_id)
        assert update.completed_percentage == 3
        assert not update.published

    @pytest.mark.asyncio
    async def test_failed_run_skipped(self, ledger, stories, progress, seed_run, story_id):
        run_id = await seed_run(5)
        await ledger.update_run(run_id, status=RunStatus.FAILED, error_message="x")
        assert await progress.update_story_progress(run_id) is None
        assert (await stories.get_story(story_id)).completion_percentage == 0

    @pytest.mark.asyncio
    async def test_single_flight_skips(self, ledger, stories, chapter_cache, seed_run):
        guard = SingleFlightGuard()
        estimator = ProgressEstimator(ledger, stories, cache=chapter_cache, guard=guard)
        run_id = await seed_run(5)
        guard.try_acquire(run_id)
        assert await estimator.update_story_progress(run_id) is None
        guard.release(run_id)
        assert await estimator.update_story_progress(run_id) is not None
        assert not guard.is_active(run_id)

    @pytest.mark.asyncio
    async def test_concurrent_updates_single_flight(self, stories, progress, seed_run, story_id):
        run_id = await seed_run(5)
        original = stories.update_completion_percentage
        writes = []

        async def slow_write(sid, percentage):
            writes.append(percentage)
            await asyncio.sleep(0.05)
            await original(sid, percentage)

        with patch.object(stories, "update_completion_percentage", slow_write):
            results = await asyncio.gather(
                progress.update_story_progress(run_id),
                progress.update_story_progress(run_id),
            )

        assert sum(r is None for r in results) == 1
        assert [r.completed_percentage for r in results if r is not None] == [3]
        assert writes == [3]
        assert (await stories.get_story(story_id)).completion_percentage == 3
        assert await progress.update_story_progress(run_id) is not None

    @pytest.mark.asyncio
    async def test_retries_transient_write(self, stories, progress, seed_run):
        run_id = await seed_run(5)
        original = stories.update_completion_percentage
        calls = {"n": 0}

        async def flaky(story_id, percentage):
            calls["n"] += 1
            if calls["n"] == 1:
                raise TransientPersistenceError("locked")
            await original(story_id, percentage)

        with patch.object(stories, "update_completion_percentage", flaky):
            update = await progress.update_story_progress(run_id)
        assert update.completed_percentage == 3
        assert calls["n"] == 2

    @pytest.mark.asyncio
    async def test_exhausted_raises_last_error(self, ledger, stories, chapter_cache, seed_run):
        estimator = ProgressEstimator(
            ledger, stories, cache=chapter_cache, retry_attempts=2, retry_delay_s=0
        )
        run_id = await seed_run(5)
        failing = AsyncMock(side_effect=TransientPersistenceError("locked"))
        with patch.object(stories, "update_completion_percentage", failing):
            with pytest.raises(TransientPersistenceError, match="locked"):
                await estimator.update_story_progress(run_id)
        assert failing.await_count == 2

    @pytest.mark.asyncio
    async def test_missing_run_not_retried(self, progress):
        with pytest.raises(NotFoundError):
            await progress.update_story_progress("nope")


class TestStepCompletionEstimate:
    @pytest.mark.asyncio
    async def test_partial_chapter(self, progress, seed_run):
        run_id = await seed_run(5)
        # (15 + 25 * 0.5) / 441
        assert await progress.get_step_completion_estimate(run_id, "write_chapter_1", 50) == 6

    @pytest.mark.asyncio
    async def test_bare_kind_covers_all_chapters(self, progress, seed_run):
        run_id = await seed_run(5)
        # (15 + 125) / 441
        assert await progress.get_step_completion_estimate(run_id, "write_chapters", 100) == 32

    @pytest.mark.asyncio
    async def test_progress_clamped(self, progress, seed_run):
        run_id = await seed_run(5)
        over = await progress.get_step_completion_estimate(run_id, "write_chapter_1", 250)
        full = await progress.get_step_completion_estimate(run_id, "write_chapter_1", 100)
        assert over == full
        assert await progress.get_step_completion_estimate(run_id, "write_chapter_1", -10) == 3

    @pytest.mark.asyncio
    async def test_unknown_step_returns_base(self, progress, seed_run):
        run_id = await seed_run(5)
        assert await progress.get_step_completion_estimate(run_id, "publish", 50) == 3

    @pytest.mark.asyncio
    async def test_error_returns_zero(self, progress):
        assert await progress.get_step_completion_estimate("nope", "assemble", 50) == 0
