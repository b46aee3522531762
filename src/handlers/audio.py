# src/handlers/audio.py
"""Audiobook step: narrate every chapter and store one audio file."""

from __future__ import annotations

import logging
from typing import Any

from storyloom.core.step_names import StepKind, StepName
from storyloom.handlers.base import BaseStepHandler, PreparedStep
from storyloom.handlers.chapter_memory import to_plain_text
from storyloom.handlers.inputs import load_completed, load_outline, require_all_chapters
from storyloom.handlers.models import AudioRequest
from storyloom.ledger.base_ledger import BaseStepLedger
from storyloom.progress.estimator import ProgressEstimator
from storyloom.providers.base_client import BaseSpeechClient
from storyloom.providers.models import SpeechOptions
from storyloom.storage.base_object_storage import BaseObjectStorage

logger = logging.getLogger(__name__)


class AudioHandler(BaseStepHandler[AudioRequest]):
    """Handles ``generate_audiobook``.

    Each chapter is synthesized separately and the MP3 segments are
    concatenated in chapter order.
    """

    def __init__(
        self,
        ledger: BaseStepLedger,
        progress: ProgressEstimator,
        speech_client: BaseSpeechClient,
        storage: BaseObjectStorage,
    ) -> None:
        super().__init__(ledger, progress)
        self._speech = speech_client
        self._storage = storage

    async def prepare(self, request: AudioRequest) -> PreparedStep:
        outline = await load_outline(self._ledger, request.run_id)
        chapters = await load_completed(self._ledger, request.run_id, StepKind.WRITE_CHAPTERS)
        require_all_chapters(outline, chapters, request.run_id)
        segments = [(outline.book_title, "")]
        for ch in outline.chapters:
            detail = chapters[ch.chapter_number]
            title = detail.get("chapter_title") or ch.chapter_title
            segments.append(
                (f"Chapter {ch.chapter_number}: {title}", to_plain_text(detail.get("chapter", "")))
            )
        return PreparedStep(step=StepName.audiobook(), inputs=segments)

    async def generate(self, request: AudioRequest, prepared: PreparedStep) -> dict[str, Any]:
        options = SpeechOptions(voice=request.voice)
        audio = bytearray()
        for heading, text in prepared.inputs:
            narration = f"{heading}.\n\n{text}" if text else f"{heading}."
            audio.extend(await self._speech.synthesize(narration, options))

        path = f"stories/{request.story_id}/{request.run_id}/audiobook.{options.response_format}"
        url = await self._storage.upload_file(path, bytes(audio), content_type="audio/mpeg")
        logger.info("Audiobook stored at %s (%d segments, %d bytes)", url, len(prepared.inputs), len(audio))
        return {
            "url": url,
            "path": path,
            "segments": len(prepared.inputs),
            "size_bytes": len(audio),
            "provider": self._speech.provider_name,
        }
