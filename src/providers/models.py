# src/providers/models.py
"""Provider-facing types: generation options and normalized responses."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from storyloom.context.models import ProviderSlot


class GenerationOptions(BaseModel):
    """Per-call text generation options."""

    temperature: float | None = None
    max_tokens: int | None = None
    json_output: bool = False


class TextCompletion(BaseModel):
    """Normalized response from any text provider.

    ``slot`` is the continuation state to store for the next turn, or None
    when the call was stateless.
    """

    content: str
    provider: str
    model: str
    latency_ms: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    response_id: str | None = None
    slot: ProviderSlot | None = None
    raw_response: Any = None

    @property
    def is_empty(self) -> bool:
        return not self.content.strip()


class ImageOptions(BaseModel):
    size: str | None = None
    quality: str | None = None


class SpeechOptions(BaseModel):
    voice: str | None = None
    response_format: str = "mp3"
    instructions: str | None = None
