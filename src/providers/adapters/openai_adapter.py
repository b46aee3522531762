# src/providers/adapters/openai_adapter.py
"""OpenAI adapters: text (Responses API), images and speech.

Text continuity uses server-side response chaining: each call passes the
previous response id and the new id is returned as a ResponseChainSlot.
"""

from __future__ import annotations

import base64
import logging
import time
from typing import Any

from storyloom.context.models import ProviderSlot, ResponseChainSlot
from storyloom.providers.base_client import (
    BaseImageClient,
    BaseSpeechClient,
    BaseTextClient,
)
from storyloom.providers.models import (
    GenerationOptions,
    ImageOptions,
    SpeechOptions,
    TextCompletion,
)

logger = logging.getLogger(__name__)


class _OpenAIClientMixin:
    _api_key: str

    @property
    def _client(self):
        """Lazy-init AsyncOpenAI client (only on first API call)."""
        client = getattr(self, "_openai_client", None)
        if client is None:
            try:
                import openai
            except ImportError as e:
                raise ImportError(
                    "openai package required: pip install openai"
                ) from e
            client = openai.AsyncOpenAI(api_key=self._api_key or None)
            self._openai_client = client
        return client


class OpenAITextAdapter(_OpenAIClientMixin, BaseTextClient):
    """OpenAI text generation via the Responses API."""

    def __init__(
        self,
        model: str = "gpt-5",
        api_key: str = "",
        max_tokens_default: int | None = None,
        temperature_default: float | None = None,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._max_tokens_default = max_tokens_default
        self._temperature_default = temperature_default

    @property
    def provider_key(self) -> str:
        return "openai"

    async def complete(
        self,
        prompt: str,
        options: GenerationOptions | None = None,
        *,
        system: str | None = None,
        slot: ProviderSlot | None = None,
    ) -> TextCompletion:
        previous_id = (
            slot.previous_response_id if isinstance(slot, ResponseChainSlot) else None
        )
        completion = await self._create(prompt, system, options, previous_id)
        if completion.response_id:
            completion.slot = ResponseChainSlot(previous_response_id=completion.response_id)
        return completion

    async def complete_stateless(
        self,
        prompt: str,
        system: str | None = None,
        options: GenerationOptions | None = None,
    ) -> TextCompletion:
        return await self._create(prompt, system, options, previous_id=None)

    async def _create(
        self,
        prompt: str,
        system: str | None,
        options: GenerationOptions | None,
        previous_id: str | None,
    ) -> TextCompletion:
        options = options or GenerationOptions()
        kwargs: dict[str, Any] = {"model": self._model, "input": prompt}
        if system:
            kwargs["instructions"] = system
        if previous_id:
            kwargs["previous_response_id"] = previous_id
        max_tokens = options.max_tokens or self._max_tokens_default
        if max_tokens:
            kwargs["max_output_tokens"] = max_tokens
        temperature = (
            options.temperature
            if options.temperature is not None
            else self._temperature_default
        )
        if temperature is not None:
            kwargs["temperature"] = temperature
        if options.json_output:
            kwargs["text"] = {"format": {"type": "json_object"}}

        t0 = time.monotonic()
        resp = await self._client.responses.create(**kwargs)
        latency = int((time.monotonic() - t0) * 1000)

        usage = getattr(resp, "usage", None)
        return TextCompletion(
            content=getattr(resp, "output_text", "") or "",
            provider="openai",
            model=self._model,
            latency_ms=latency,
            input_tokens=getattr(usage, "input_tokens", 0) if usage else 0,
            output_tokens=getattr(usage, "output_tokens", 0) if usage else 0,
            response_id=getattr(resp, "id", None),
            raw_response=resp,
        )


class OpenAIImageAdapter(_OpenAIClientMixin, BaseImageClient):
    """OpenAI image generation (gpt-image-1 returns base64 PNG)."""

    def __init__(
        self,
        model: str = "gpt-image-1",
        api_key: str = "",
        size: str = "1024x1536",
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._size = size

    @property
    def provider_name(self) -> str:
        return "openai"

    async def generate(self, prompt: str, options: ImageOptions | None = None) -> bytes:
        options = options or ImageOptions()
        kwargs: dict[str, Any] = {
            "model": self._model,
            "prompt": prompt,
            "size": options.size or self._size,
            "n": 1,
        }
        if options.quality:
            kwargs["quality"] = options.quality

        resp = await self._client.images.generate(**kwargs)
        if not resp.data or not resp.data[0].b64_json:
            raise ValueError(f"OpenAI image response for {self._model} contained no image data")
        return base64.b64decode(resp.data[0].b64_json)


class OpenAISpeechAdapter(_OpenAIClientMixin, BaseSpeechClient):
    """OpenAI text-to-speech."""

    def __init__(
        self,
        model: str = "gpt-4o-mini-tts",
        api_key: str = "",
        voice: str = "alloy",
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._voice = voice

    @property
    def provider_name(self) -> str:
        return "openai"

    async def synthesize(self, text: str, options: SpeechOptions | None = None) -> bytes:
        options = options or SpeechOptions()
        kwargs: dict[str, Any] = {
            "model": self._model,
            "voice": options.voice or self._voice,
            "input": text,
            "response_format": options.response_format,
        }
        if options.instructions:
            kwargs["instructions"] = options.instructions
        resp = await self._client.audio.speech.create(**kwargs)
        return resp.content
