# src/api/facade.py
"""Public API facade: one object wiring the ledger, context manager,
progress estimator and step handlers.

Usage:
    from storyloom.api.facade import StoryWorkflow
    workflow = StoryWorkflow.from_settings()
    run = await workflow.start_run(story_id)
    await workflow.outline.execute(OutlineRequest(story_id=story_id, run_id=run.run_id))
"""

from __future__ import annotations

import logging
from typing import Any

from storyloom.api.models import RunWithSteps
from storyloom.config.settings import Settings
from storyloom.context.base_context_store import BaseContextStore
from storyloom.context.context_factory import create_context_store
from storyloom.context.manager import ContextManager
from storyloom.context.models import context_id_for
from storyloom.core.errors import NotFoundError
from storyloom.core.models import Run, RunStatus, StepStatus
from storyloom.core.step_names import StepName
from storyloom.handlers.assembler import BaseAssembler, HtmlAssembler
from storyloom.handlers.assembly import AssemblyHandler
from storyloom.handlers.audio import AudioHandler
from storyloom.handlers.chapter import ChapterHandler
from storyloom.handlers.image import ImageHandler
from storyloom.handlers.outline import OutlineHandler
from storyloom.ledger.base_ledger import BaseStepLedger
from storyloom.ledger.ledger_factory import create_ledger
from storyloom.logging.context import set_run_context
from storyloom.progress.chapter_cache import ChapterCountCache
from storyloom.progress.estimator import ProgressEstimator
from storyloom.progress.models import ProgressCalculation
from storyloom.providers.base_client import BaseImageClient, BaseSpeechClient, BaseTextClient
from storyloom.providers.client_factory import (
    create_image_client,
    create_speech_client,
    create_text_client,
)
from storyloom.storage.base_object_storage import BaseObjectStorage
from storyloom.storage.storage_factory import create_object_storage
from storyloom.stories.base_story_store import BaseStoryStore
from storyloom.stories.story_factory import create_story_store

logger = logging.getLogger(__name__)

_PROGRESS_STATUSES = (RunStatus.RUNNING, RunStatus.COMPLETED)


class StoryWorkflow:
    """Entry point for the routes that drive a story generation run."""

    def __init__(
        self,
        settings: Settings,
        ledger: BaseStepLedger,
        stories: BaseStoryStore,
        contexts: ContextManager,
        progress: ProgressEstimator,
        text_client: BaseTextClient,
        image_client: BaseImageClient,
        speech_client: BaseSpeechClient,
        storage: BaseObjectStorage,
        assembler: BaseAssembler,
    ) -> None:
        self.settings = settings
        self.ledger = ledger
        self.stories = stories
        self.contexts = contexts
        self.progress = progress

        self.outline = OutlineHandler(
            ledger, progress, stories, contexts, text_client,
            default_chapter_count=settings.default_chapter_count,
            summary_max_chars=settings.outline_summary_max_chars,
            temperature=settings.text_temperature,
        )
        self.chapter = ChapterHandler(
            ledger, progress, contexts, text_client,
            story_context_max_chars=settings.story_context_max_chars,
            summary_max_chars=settings.outline_summary_max_chars,
            temperature=settings.text_temperature,
        )
        self.image = ImageHandler(ledger, progress, stories, image_client, storage)
        self.assembly = AssemblyHandler(ledger, progress, assembler, storage)
        self.audio = AudioHandler(ledger, progress, speech_client, storage)

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        ledger: BaseStepLedger | None = None,
        stories: BaseStoryStore | None = None,
        context_store: BaseContextStore | None = None,
        text_client: BaseTextClient | None = None,
        image_client: BaseImageClient | None = None,
        speech_client: BaseSpeechClient | None = None,
        storage: BaseObjectStorage | None = None,
        assembler: BaseAssembler | None = None,
    ) -> StoryWorkflow:
        """Build a workflow from settings; any collaborator may be injected.

        Args:
            settings: Global settings. Loaded from .env if None.
        """
        settings = settings or Settings()
        ledger = ledger or create_ledger(settings)
        stories = stories or create_story_store(settings)
        contexts = ContextManager(context_store or create_context_store(settings))
        progress = ProgressEstimator(
            ledger,
            stories,
            cache=ChapterCountCache(ttl_s=settings.progress_cache_ttl_s),
            default_chapter_count=settings.default_chapter_count,
            retry_attempts=settings.progress_retry_attempts,
            retry_delay_s=settings.progress_retry_delay_s,
        )
        return cls(
            settings=settings,
            ledger=ledger,
            stories=stories,
            contexts=contexts,
            progress=progress,
            text_client=text_client or create_text_client(settings),
            image_client=image_client or create_image_client(settings),
            speech_client=speech_client or create_speech_client(settings),
            storage=storage or create_object_storage(settings),
            assembler=assembler or HtmlAssembler(),
        )

    # --- Run lifecycle ---

    async def start_run(
        self,
        story_id: str,
        run_id: str | None = None,
        initiated_by: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Run:
        """Create the story's run, or return its active one."""
        meta = dict(metadata or {})
        if initiated_by:
            meta["initiated_by"] = initiated_by
        run = await self.ledger.create_or_get_run(story_id, run_id=run_id, metadata=meta)
        set_run_context(story_id, run.run_id)
        return run

    async def update_run(
        self,
        run_id: str,
        story_id: str | None = None,
        *,
        status: RunStatus | str | None = None,
        current_step: str | None = None,
        error_message: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Run:
        """Patch a run, creating it first when unknown and ``story_id`` is given.

        Progress is recomputed for running and completed runs; progress
        failures are logged, never raised.

        Raises:
            NotFoundError: If the run is unknown and no story id was given.
        """
        if await self.ledger.find_run(run_id) is None:
            if story_id is None:
                raise NotFoundError("run", run_id)
            logger.info("Run %s not found, creating it for story %s", run_id, story_id)
            await self.ledger.create_or_get_run(story_id, run_id=run_id)

        run = await self.ledger.update_run(
            run_id,
            status=RunStatus(status) if status is not None else None,
            current_step=current_step,
            error_message=error_message,
            metadata=metadata,
        )
        set_run_context(run.story_id, run.run_id)
        if run.status in _PROGRESS_STATUSES:
            await self._refresh_progress(run_id)
        return run

    async def complete_run(self, run_id: str) -> Run:
        """Record ``done``, complete the run, clear its context, publish progress."""
        run = await self.ledger.get_run(run_id)
        set_run_context(run.story_id, run_id)
        done = str(StepName.done())
        await self.ledger.store_step_result(run_id, done, StepStatus.COMPLETED, {"completed": True})
        run = await self.ledger.update_run(
            run_id, status=RunStatus.COMPLETED, current_step=done
        )
        await self.contexts.clear_context(context_id_for(run.story_id, run_id))
        await self._refresh_progress(run_id)
        logger.info("Run %s completed", run_id)
        return run

    async def fail_run(self, run_id: str, error_message: str) -> Run:
        run = await self.ledger.update_run(
            run_id, status=RunStatus.FAILED, error_message=error_message
        )
        logger.warning("Run %s failed: %s", run_id, error_message)
        return run

    async def cancel_run(self, run_id: str) -> Run:
        """Advisory cancellation; in-flight handlers are not interrupted."""
        return await self.ledger.update_run(run_id, status=RunStatus.CANCELLED)

    async def get_run_with_steps(self, run_id: str) -> RunWithSteps:
        run = await self.ledger.get_run(run_id)
        steps = await self.ledger.get_run_steps(run_id)
        return RunWithSteps(run=run, steps=steps)

    async def calculate_progress(self, run_id: str) -> ProgressCalculation:
        return await self.progress.calculate_progress(run_id)

    async def cleanup_contexts(self, max_age_hours: float | None = None) -> int:
        hours = max_age_hours if max_age_hours is not None else self.settings.context_max_age_hours
        self.progress.cache.purge_expired()
        return await self.contexts.cleanup_old_contexts(hours)

    async def _refresh_progress(self, run_id: str) -> None:
        try:
            await self.progress.update_story_progress(run_id)
        except Exception:
            logger.exception("Progress update failed for run %s (non-fatal)", run_id)
