# src/handlers/outline.py
"""Outline step: generate, validate and store the book outline, then seed
the story conversation context."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from storyloom.context.manager import ContextManager
from storyloom.context.models import context_id_for
from storyloom.core.errors import OutlineValidationError, StepInputError
from storyloom.core.step_names import StepName
from storyloom.handlers.base import BaseStepHandler, PreparedStep
from storyloom.handlers.models import Outline, OutlineRequest
from storyloom.handlers.prompts import (
    OUTLINE_SYSTEM_PROMPT,
    build_outline_prompt,
    build_story_system_prompt,
)
from storyloom.ledger.base_ledger import BaseStepLedger
from storyloom.progress.estimator import ProgressEstimator
from storyloom.providers.base_client import BaseTextClient
from storyloom.providers.models import GenerationOptions
from storyloom.stories.base_story_store import BaseStoryStore

logger = logging.getLogger(__name__)

OUTLINE_ATTEMPTS = 2
_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_outline(text: str) -> tuple[Outline | None, list[str]]:
    """Parse model output into an Outline, or return the problems found."""
    cleaned = _FENCE_RE.sub("", text.strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        return None, [f"response is not valid JSON ({e.msg})"]
    if not isinstance(data, dict):
        return None, ["response is not a JSON object"]
    try:
        return Outline.model_validate(data), []
    except ValidationError as e:
        return None, [
            f"{'.'.join(str(p) for p in err['loc']) or 'outline'}: {err['msg']}"
            for err in e.errors()
        ]


class OutlineHandler(BaseStepHandler[OutlineRequest]):
    """Handles ``generate_outline``."""

    def __init__(
        self,
        ledger: BaseStepLedger,
        progress: ProgressEstimator,
        stories: BaseStoryStore,
        contexts: ContextManager,
        text_client: BaseTextClient,
        *,
        default_chapter_count: int = 4,
        summary_max_chars: int = 3500,
        temperature: float | None = None,
    ) -> None:
        super().__init__(ledger, progress)
        self._stories = stories
        self._contexts = contexts
        self._text = text_client
        self._default_chapter_count = default_chapter_count
        self._summary_max_chars = summary_max_chars
        self._temperature = temperature

    async def prepare(self, request: OutlineRequest) -> PreparedStep:
        story = await self._stories.get_story(request.story_id)
        if story is None:
            raise StepInputError(f"Story not found: {request.story_id}")
        return PreparedStep(
            step=StepName.outline(),
            inputs=story,
            context_id=context_id_for(request.story_id, request.run_id),
        )

    async def generate(self, request: OutlineRequest, prepared: PreparedStep) -> dict[str, Any]:
        story = prepared.inputs
        chapter_count = (
            request.chapter_count or story.chapter_count or self._default_chapter_count
        )
        options = GenerationOptions(json_output=True, temperature=self._temperature)

        problems: list[str] = []
        for attempt in range(1, OUTLINE_ATTEMPTS + 1):
            prompt = build_outline_prompt(story, request, chapter_count, problems or None)
            completion = await self._text.complete_stateless(
                prompt, system=OUTLINE_SYSTEM_PROMPT, options=options,
            )
            outline, problems = parse_outline(completion.content)
            if outline is not None:
                logger.info(
                    "Outline generated: '%s' with %d chapters (attempt %d)",
                    outline.book_title, len(outline.chapters), attempt,
                )
                return outline.model_dump()
            logger.warning(
                "Outline attempt %d/%d rejected: %s",
                attempt, OUTLINE_ATTEMPTS, "; ".join(problems),
            )

        raise OutlineValidationError(problems)

    async def after_store(
        self, request: OutlineRequest, prepared: PreparedStep, detail: dict[str, Any]
    ) -> None:
        outline = Outline.model_validate(detail)
        # A count cached before the outline existed came from the story record or default
        self._progress.cache.invalidate(request.run_id)
        await self._contexts.initialize_context(
            prepared.context_id,  # type: ignore[arg-type]
            request.story_id,
            build_story_system_prompt(outline, self._summary_max_chars),
        )
