# src/handlers/chapter.py
"""Chapter step: write one chapter inside the story's conversation context."""

from __future__ import annotations

import logging
from typing import Any

from storyloom.context.manager import ContextManager
from storyloom.context.models import context_id_for
from storyloom.core.errors import StepInputError
from storyloom.core.step_names import StepKind, StepName
from storyloom.handlers.base import BaseStepHandler, PreparedStep
from storyloom.handlers.chapter_memory import build_chapter_memory
from storyloom.handlers.inputs import load_completed, load_outline
from storyloom.handlers.models import ChapterRequest
from storyloom.handlers.prompts import (
    build_chapter_prompt,
    build_story_system_prompt,
    outline_overview,
)
from storyloom.ledger.base_ledger import BaseStepLedger
from storyloom.progress.estimator import ProgressEstimator
from storyloom.providers.base_client import BaseTextClient
from storyloom.providers.continuity import complete_with_continuity
from storyloom.providers.models import GenerationOptions

logger = logging.getLogger(__name__)


class ChapterHandler(BaseStepHandler[ChapterRequest]):
    """Handles ``write_chapter_<n>``."""

    def __init__(
        self,
        ledger: BaseStepLedger,
        progress: ProgressEstimator,
        contexts: ContextManager,
        text_client: BaseTextClient,
        *,
        story_context_max_chars: int = 12000,
        summary_max_chars: int = 3500,
        temperature: float | None = None,
    ) -> None:
        super().__init__(ledger, progress)
        self._contexts = contexts
        self._text = text_client
        self._story_context_max_chars = story_context_max_chars
        self._summary_max_chars = summary_max_chars
        self._temperature = temperature

    async def prepare(self, request: ChapterRequest) -> PreparedStep:
        outline = await load_outline(self._ledger, request.run_id)
        total = len(outline.chapters)
        number = request.chapter_number
        chapter = outline.chapter(number) if 1 <= number <= total else None
        if chapter is None:
            raise StepInputError(
                f"Invalid chapter number {number}. Must be between 1 and {total}."
            )
        return PreparedStep(
            step=StepName.chapter_text(number),
            inputs=(outline, chapter),
            context_id=context_id_for(request.story_id, request.run_id),
        )

    async def generate(self, request: ChapterRequest, prepared: PreparedStep) -> dict[str, Any]:
        outline, chapter = prepared.inputs
        context_id: str = prepared.context_id  # type: ignore[assignment]

        context = await self._contexts.get_context(context_id)
        if context is None:
            logger.info("No context for %s, bootstrapping from outline", context_id)
            context = await self._contexts.initialize_context(
                context_id,
                request.story_id,
                build_story_system_prompt(outline, self._summary_max_chars),
            )

        written = await load_completed(self._ledger, request.run_id, StepKind.WRITE_CHAPTERS)
        memory = build_chapter_memory(
            {n: d.get("chapter", "") for n, d in written.items()},
            request.chapter_number,
            self._story_context_max_chars,
            outline_overview=outline_overview(outline),
        )
        prompt = build_chapter_prompt(
            outline, chapter, request.chapter_title, request.chapter_synopsis
        )
        if memory:
            prompt = f"{memory}\n\n{prompt}"

        completion = await complete_with_continuity(
            self._text,
            self._contexts,
            context,
            prompt,
            GenerationOptions(temperature=self._temperature),
        )
        logger.info(
            "Chapter %d written (%d chars, %s)",
            request.chapter_number, len(completion.content), completion.provider,
        )
        return {
            "chapter_number": request.chapter_number,
            "chapter_title": request.chapter_title or chapter.chapter_title,
            "chapter": completion.content.strip(),
            "image_prompts": [chapter.chapter_photo_prompt],
            "context_id": context_id,
            "provider": completion.provider,
        }
