# src/handlers/assembly.py
"""Assembly step: gather outline, chapters and images into one book artifact."""

from __future__ import annotations

import logging
from typing import Any

from storyloom.core.step_names import StepKind, StepName
from storyloom.handlers.assembler import BaseAssembler, Manuscript, ManuscriptChapter
from storyloom.handlers.base import BaseStepHandler, PreparedStep
from storyloom.handlers.inputs import (
    load_completed,
    load_detail,
    load_outline,
    require_all_chapters,
)
from storyloom.handlers.models import AssemblyRequest
from storyloom.ledger.base_ledger import BaseStepLedger
from storyloom.progress.estimator import ProgressEstimator
from storyloom.storage.base_object_storage import BaseObjectStorage

logger = logging.getLogger(__name__)


class AssemblyHandler(BaseStepHandler[AssemblyRequest]):
    """Handles ``assemble``."""

    def __init__(
        self,
        ledger: BaseStepLedger,
        progress: ProgressEstimator,
        assembler: BaseAssembler,
        storage: BaseObjectStorage,
    ) -> None:
        super().__init__(ledger, progress)
        self._assembler = assembler
        self._storage = storage

    async def prepare(self, request: AssemblyRequest) -> PreparedStep:
        run_id = request.run_id
        outline = await load_outline(self._ledger, run_id)
        chapters = await load_completed(self._ledger, run_id, StepKind.WRITE_CHAPTERS)
        require_all_chapters(outline, chapters, run_id)
        images = await load_completed(self._ledger, run_id, StepKind.GENERATE_IMAGES)
        front = await load_detail(self._ledger, run_id, StepName.front_cover())
        back = await load_detail(self._ledger, run_id, StepName.back_cover())

        manuscript = Manuscript(
            story_id=request.story_id,
            run_id=run_id,
            title=outline.book_title,
            synopsis=outline.synopsis,
            cover_url=front.get("url") if front else None,
            back_cover_url=back.get("url") if back else None,
            chapters=[
                ManuscriptChapter(
                    number=ch.chapter_number,
                    title=chapters[ch.chapter_number].get("chapter_title") or ch.chapter_title,
                    text=chapters[ch.chapter_number].get("chapter", ""),
                    image_url=images.get(ch.chapter_number, {}).get("url"),
                )
                for ch in outline.chapters
            ],
        )
        return PreparedStep(step=StepName.assemble(), inputs=manuscript)

    async def generate(self, request: AssemblyRequest, prepared: PreparedStep) -> dict[str, Any]:
        manuscript: Manuscript = prepared.inputs
        book = await self._assembler.assemble(manuscript)
        path = f"stories/{request.story_id}/{request.run_id}/book.{book.extension}"
        url = await self._storage.upload_file(path, book.content, content_type=book.content_type)
        missing_images = [c.number for c in manuscript.chapters if not c.image_url]
        if missing_images:
            logger.warning("Assembled without images for chapters %s", missing_images)
        logger.info("Book assembled: %s (%d bytes)", url, len(book.content))
        return {
            "url": url,
            "path": path,
            "content_type": book.content_type,
            "size_bytes": len(book.content),
            "chapter_count": len(manuscript.chapters),
            "missing_images": missing_images,
        }
