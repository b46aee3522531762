# src/progress/estimator.py
"""Progress estimator.

Turns a run's completed steps into a bounded completion percentage and
writes it to the story record. The step set is sized by the run's chapter
count, which is resolved from the outline, then the story record, then a
default, and cached per run.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from storyloom.core.errors import RetryExhaustedError, TransientPersistenceError
from storyloom.core.models import RunStatus, StepStatus
from storyloom.core.retry import with_retry
from storyloom.core.step_names import StepKind, StepName
from storyloom.ledger.base_ledger import BaseStepLedger
from storyloom.progress.chapter_cache import ChapterCountCache
from storyloom.progress.models import ProgressCalculation, ProgressUpdate
from storyloom.progress.single_flight import SingleFlightGuard
from storyloom.progress.step_table import (
    DEFAULT_CHAPTER_COUNT,
    DEFAULT_STEP_TABLE,
    StepTable,
    elapsed_time,
    step_time,
    to_percentage,
    total_estimated_time,
    total_steps,
)
from storyloom.stories.base_story_store import BaseStoryStore

logger = logging.getLogger(__name__)

_CHAPTER_MENTION_RE = re.compile(r"Chapter\s+\d+", re.IGNORECASE)
PUBLISHED_STATUS = "published"


class ProgressEstimator:
    """Compute and persist story completion percentages."""

    def __init__(
        self,
        ledger: BaseStepLedger,
        stories: BaseStoryStore,
        *,
        cache: ChapterCountCache | None = None,
        table: StepTable = DEFAULT_STEP_TABLE,
        default_chapter_count: int = DEFAULT_CHAPTER_COUNT,
        retry_attempts: int = 3,
        retry_delay_s: float = 1.0,
        guard: SingleFlightGuard | None = None,
    ) -> None:
        self._ledger = ledger
        self._stories = stories
        self._cache = cache if cache is not None else ChapterCountCache()
        self._table = table
        self._default_chapter_count = default_chapter_count
        self._retry_attempts = retry_attempts
        self._retry_delay_s = retry_delay_s
        self._guard = guard if guard is not None else SingleFlightGuard()

    @property
    def cache(self) -> ChapterCountCache:
        return self._cache

    async def get_chapter_count(self, run_id: str) -> int:
        """Resolve the run's chapter count (cached).

        Any lookup failure yields the default, which is cached as well.
        """
        cached = self._cache.get(run_id)
        if cached is not None:
            return cached

        try:
            count = await self._resolve_chapter_count(run_id)
        except Exception as e:
            logger.error("Failed to get chapter count for run %s: %s", run_id, e)
            count = self._default_chapter_count

        self._cache.set(run_id, count)
        return count

    async def _resolve_chapter_count(self, run_id: str) -> int:
        outline = await self._ledger.find_step(run_id, str(StepName.outline()))
        if outline is not None and isinstance(outline.detail, dict):
            chapters = outline.detail.get("chapters")
            if isinstance(chapters, list):
                logger.debug("Chapter count %d from outline (run %s)", len(chapters), run_id)
                return len(chapters)
            content = outline.detail.get("content")
            if isinstance(content, str):
                mentions = _CHAPTER_MENTION_RE.findall(content)
                if mentions:
                    logger.debug(
                        "Chapter count %d from outline content (run %s)", len(mentions), run_id
                    )
                    return len(mentions)

        run = await self._ledger.find_run(run_id)
        if run is not None:
            story = await self._stories.get_story(run.story_id)
            if story is not None and story.chapter_count:
                logger.debug(
                    "Chapter count %d from story %s (run %s)",
                    story.chapter_count, run.story_id, run_id,
                )
                return story.chapter_count

        logger.warning(
            "Could not determine chapter count for run %s, using default of %d",
            run_id, self._default_chapter_count,
        )
        return self._default_chapter_count

    async def calculate_progress(self, run_id: str) -> ProgressCalculation:
        """Estimate progress from the run's completed steps.

        Raises:
            NotFoundError: If the run does not exist.
        """
        run = await self._ledger.get_run(run_id)
        steps = await self._ledger.get_run_steps(run_id)
        completed = [s.step_name for s in steps if s.status == StepStatus.COMPLETED]
        chapter_count = await self.get_chapter_count(run_id)

        total = total_estimated_time(chapter_count, self._table)
        elapsed = elapsed_time(completed, self._table)

        result = ProgressCalculation(
            completed_percentage=to_percentage(elapsed, total),
            total_estimated_time=total,
            elapsed_time=elapsed,
            remaining_time=max(total - elapsed, 0.0),
            current_step=run.current_step or "unknown",
            completed_steps=completed,
            total_steps=total_steps(chapter_count, self._table),
            chapter_count=chapter_count,
        )
        logger.debug(
            "Progress calculated for run %s: %d%% (%d/%d steps)",
            run_id, result.completed_percentage, len(completed), result.total_steps,
        )
        return result

    async def update_story_progress(self, run_id: str) -> ProgressUpdate | None:
        """Recompute and persist the story's completion percentage.

        Returns None when another update for the run is in flight or the
        run has failed. Transient store errors are retried; the last error
        propagates once attempts are exhausted.
        """
        if not self._guard.try_acquire(run_id):
            logger.debug("Progress update already in progress for run %s, skipping", run_id)
            return None

        try:
            return await with_retry(
                self._update_once,
                run_id,
                attempts=self._retry_attempts,
                delay_s=self._retry_delay_s,
                retry_on=(TransientPersistenceError,),
                label=f"progress update for run {run_id}",
            )
        except RetryExhaustedError as e:
            logger.error("Failed to update story progress for run %s: %s", run_id, e)
            raise e.last_error from e
        finally:
            self._guard.release(run_id)

    async def _update_once(self, run_id: str) -> ProgressUpdate | None:
        run = await self._ledger.get_run(run_id)
        if run.status == RunStatus.FAILED:
            logger.debug("Skipping progress update for failed run %s", run_id)
            return None

        progress = await self.calculate_progress(run_id)
        finished = (
            run.status == RunStatus.COMPLETED
            and run.current_step == str(StepName.done())
        )
        percentage = 100 if finished else progress.completed_percentage

        await self._stories.update_completion_percentage(run.story_id, percentage)
        if finished:
            await self._stories.update_status(run.story_id, PUBLISHED_STATUS)

        logger.info(
            "Story %s progress updated: %d%% (step %s, %d/%d steps%s)",
            run.story_id, percentage, progress.current_step,
            len(progress.completed_steps), progress.total_steps,
            ", published" if finished else "",
        )
        return ProgressUpdate(
            run_id=run_id,
            story_id=run.story_id,
            completed_percentage=percentage,
            published=finished,
        )

    async def get_step_completion_estimate(
        self, run_id: str, step_name: str, step_progress: float = 0
    ) -> int:
        """Percentage including partial progress (0-100) within ``step_name``.

        Returns 0 on any error.
        """
        try:
            base = await self.calculate_progress(run_id)
            step = StepName.parse(step_name)
            if step is None:
                kind = _bare_kind(step_name)
                if kind is None:
                    return base.completed_percentage
                estimate = self._table.get(kind)
                if estimate is None:
                    return base.completed_percentage
                # Bare per-chapter kind covers every chapter
                current = estimate.seconds * base.chapter_count
            else:
                current = step_time(step, self._table)

            fraction = max(0.0, min(float(step_progress), 100.0)) / 100
            return to_percentage(
                base.elapsed_time + current * fraction, base.total_estimated_time
            )
        except Exception as e:
            logger.error(
                "Failed to get step completion estimate for run %s step %s: %s",
                run_id, step_name, e,
            )
            return 0


def _bare_kind(name: str) -> StepKind | None:
    try:
        kind = StepKind(name)
    except ValueError:
        return None
    return kind if kind.per_chapter else None


def describe(progress: ProgressCalculation) -> dict[str, Any]:
    """Compact dict for CLI output and structured logs."""
    return {
        "percentage": progress.completed_percentage,
        "current_step": progress.current_step,
        "completed": len(progress.completed_steps),
        "total_steps": progress.total_steps,
        "chapters": progress.chapter_count,
        "remaining_s": progress.remaining_time,
    }
