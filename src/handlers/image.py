# src/handlers/image.py
"""Image steps: front cover, back cover and per-chapter illustrations."""

from __future__ import annotations

import logging
from typing import Any

from storyloom.core.errors import StepInputError
from storyloom.core.step_names import StepName
from storyloom.handlers.base import BaseStepHandler, PreparedStep
from storyloom.handlers.inputs import load_outline
from storyloom.handlers.models import ImageRequest, Outline
from storyloom.ledger.base_ledger import BaseStepLedger
from storyloom.progress.estimator import ProgressEstimator
from storyloom.providers.base_client import BaseImageClient
from storyloom.storage.base_object_storage import BaseObjectStorage
from storyloom.stories.base_story_store import BaseStoryStore

logger = logging.getLogger(__name__)


def image_object_path(story_id: str, run_id: str, step: StepName) -> str:
    """Storage path for an image step's PNG."""
    if step.chapter is not None:
        filename = f"chapter_{step.chapter}.png"
    elif step == StepName.front_cover():
        filename = "front_cover.png"
    else:
        filename = "back_cover.png"
    return f"stories/{story_id}/{run_id}/images/{filename}"


class ImageHandler(BaseStepHandler[ImageRequest]):
    """Handles ``generate_front_cover``, ``generate_back_cover`` and
    ``generate_image_chapter_<n>``."""

    def __init__(
        self,
        ledger: BaseStepLedger,
        progress: ProgressEstimator,
        stories: BaseStoryStore,
        image_client: BaseImageClient,
        storage: BaseObjectStorage,
    ) -> None:
        super().__init__(ledger, progress)
        self._stories = stories
        self._image = image_client
        self._storage = storage

    async def prepare(self, request: ImageRequest) -> PreparedStep:
        step = self._resolve_step(request)
        prompt = (request.prompt or "").strip()
        if not prompt:
            outline = await load_outline(self._ledger, request.run_id)
            prompt = self._prompt_from_outline(outline, step).strip()
        return PreparedStep(step=step, inputs=prompt)

    @staticmethod
    def _resolve_step(request: ImageRequest) -> StepName:
        if request.image_type == "front_cover":
            return StepName.front_cover()
        if request.image_type == "back_cover":
            return StepName.back_cover()
        if request.chapter_number is None or request.chapter_number < 1:
            raise StepInputError("chapter_number (>= 1) is required for chapter images")
        return StepName.chapter_image(request.chapter_number)

    @staticmethod
    def _prompt_from_outline(outline: Outline, step: StepName) -> str:
        if step == StepName.front_cover():
            return outline.book_cover_prompt
        if step == StepName.back_cover():
            return outline.book_back_cover_prompt
        chapter = outline.chapter(step.chapter)  # type: ignore[arg-type]
        if chapter is None:
            raise StepInputError(
                f"Invalid chapter number {step.chapter}. "
                f"Must be between 1 and {len(outline.chapters)}."
            )
        return chapter.chapter_photo_prompt

    async def generate(self, request: ImageRequest, prepared: PreparedStep) -> dict[str, Any]:
        prompt: str = prepared.inputs
        image = await self._image.generate(prompt)
        path = image_object_path(request.story_id, request.run_id, prepared.step)
        url = await self._storage.upload_file(path, image, content_type="image/png")
        logger.info("Image %s stored at %s (%d bytes)", prepared.step, url, len(image))
        return {
            "image_type": request.image_type,
            "chapter_number": prepared.step.chapter,
            "url": url,
            "path": path,
            "prompt": prompt,
            "size_bytes": len(image),
            "provider": self._image.provider_name,
        }

    async def after_store(
        self, request: ImageRequest, prepared: PreparedStep, detail: dict[str, Any]
    ) -> None:
        if prepared.step == StepName.front_cover():
            await self._stories.update_cover_uris(request.story_id, cover_uri=detail["url"])
        elif prepared.step == StepName.back_cover():
            await self._stories.update_cover_uris(request.story_id, back_cover_uri=detail["url"])
