# tests/unit/api/test_facade.py
"""Tests for api/facade.py — run lifecycle through StoryWorkflow."""

from __future__ import annotations

import asyncio

import pytest

from storyloom.api.facade import StoryWorkflow
from storyloom.context.memory_store import MemoryContextStore
from storyloom.core.errors import NotFoundError
from storyloom.core.models import RunStatus, StepStatus
from storyloom.logging.context import clear_context


@pytest.fixture
def workflow(settings, ledger, stories, mock_text_client, mock_image_client, mock_speech_client, storage):
    wf = StoryWorkflow.from_settings(
        settings,
        ledger=ledger,
        stories=stories,
        context_store=MemoryContextStore(),
        text_client=mock_text_client,
        image_client=mock_image_client,
        speech_client=mock_speech_client,
        storage=storage,
    )
    yield wf
    clear_context()


class TestFromSettings:
    def test_wires_handlers(self, workflow, settings):
        assert workflow.outline is not None
        assert workflow.chapter is not None
        assert workflow.image is not None
        assert workflow.assembly is not None
        assert workflow.audio is not None
        assert workflow.settings is settings

    def test_defaults_from_settings(self, settings, mock_text_client, mock_image_client, mock_speech_client):
        wf = StoryWorkflow.from_settings(
            settings,
            text_client=mock_text_client,
            image_client=mock_image_client,
            speech_client=mock_speech_client,
        )
        assert wf.progress.cache.get("anything") is None


class TestRunLifecycle:
    @pytest.mark.asyncio
    async def test_start_run(self, workflow, story_id):
        run = await workflow.start_run(story_id, initiated_by="user-7")
        assert run.status == RunStatus.QUEUED
        assert run.metadata == {"initiated_by": "user-7"}
        again = await workflow.start_run(story_id)
        assert again.run_id == run.run_id

    @pytest.mark.asyncio
    async def test_update_unknown_without_story(self, workflow):
        with pytest.raises(NotFoundError):
            await workflow.update_run("nope", status="running")

    @pytest.mark.asyncio
    async def test_update_creates_missing_run(self, workflow, stories, story_id):
        run = await workflow.update_run(
            "run-external", story_id, status="running", current_step="generate_outline"
        )
        assert run.run_id == "run-external"
        assert run.status == RunStatus.RUNNING
        assert run.current_step == "generate_outline"
        assert (await stories.get_story(story_id)).completion_percentage == 0

    @pytest.mark.asyncio
    async def test_update_merges_metadata(self, workflow, story_id):
        run = await workflow.start_run(story_id, metadata={"a": 1})
        updated = await workflow.update_run(run.run_id, metadata={"b": 2})
        assert updated.metadata == {"a": 1, "b": 2}
        assert updated.status == RunStatus.QUEUED

    @pytest.mark.asyncio
    async def test_complete_run(self, workflow, ledger, stories, story_id):
        run = await workflow.start_run(story_id)
        context_id = f"{story_id}-{run.run_id}"
        await workflow.contexts.initialize_context(context_id, story_id, "sys")

        completed = await workflow.complete_run(run.run_id)

        assert completed.status == RunStatus.COMPLETED
        assert completed.current_step == "done"
        assert completed.ended_at is not None
        done = await ledger.get_step_result(run.run_id, "done")
        assert done.status == StepStatus.COMPLETED
        assert done.detail == {"completed": True}
        assert await workflow.contexts.get_context(context_id) is None
        story = await stories.get_story(story_id)
        assert story.completion_percentage == 100
        assert story.status == "published"

    @pytest.mark.asyncio
    async def test_fail_run(self, workflow, stories, story_id):
        run = await workflow.start_run(story_id)
        failed = await workflow.fail_run(run.run_id, "image provider down")
        assert failed.status == RunStatus.FAILED
        assert failed.error_message == "image provider down"
        # a failed run leaves the story percentage alone
        await workflow.update_run(run.run_id, current_step="assemble")
        assert (await stories.get_story(story_id)).completion_percentage == 0

    @pytest.mark.asyncio
    async def test_cancel_run(self, workflow, story_id):
        run = await workflow.start_run(story_id)
        cancelled = await workflow.cancel_run(run.run_id)
        assert cancelled.status == RunStatus.CANCELLED
        new_run = await workflow.start_run(story_id)
        assert new_run.run_id != run.run_id

    @pytest.mark.asyncio
    async def test_run_with_steps(self, workflow, ledger, story_id):
        run = await workflow.start_run(story_id)
        await ledger.store_step_result(run.run_id, "generate_outline", StepStatus.RUNNING)
        view = await workflow.get_run_with_steps(run.run_id)
        assert view.run.run_id == run.run_id
        assert view.step("generate_outline").status == StepStatus.RUNNING
        assert view.step("assemble") is None

    @pytest.mark.asyncio
    async def test_calculate_progress(self, workflow, story_id):
        run = await workflow.start_run(story_id)
        progress = await workflow.calculate_progress(run.run_id)
        assert progress.chapter_count == 3
        assert progress.completed_percentage == 0


class TestCleanup:
    @pytest.mark.asyncio
    async def test_cleanup_contexts(self, workflow):
        await workflow.contexts.initialize_context("c1", "s1", "sys")
        assert await workflow.cleanup_contexts(max_age_hours=1) == 0
        await asyncio.sleep(0.01)
        assert await workflow.cleanup_contexts(max_age_hours=0) == 1
