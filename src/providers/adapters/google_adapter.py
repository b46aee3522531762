# src/providers/adapters/google_adapter.py
"""Google Gemini adapter implementing BaseTextClient.

Uses the google-generativeai SDK. Continuity lives in a ChatSession object
held in process memory; the SDK offers no durable conversation token.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from storyloom.context.models import ChatSessionSlot, ProviderSlot
from storyloom.providers.base_client import BaseTextClient
from storyloom.providers.models import GenerationOptions, TextCompletion

logger = logging.getLogger(__name__)


class GoogleTextAdapter(BaseTextClient):
    """Google Gemini adapter."""

    def __init__(
        self,
        model: str = "gemini-2.5-flash",
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
        return "google"

    def _genai(self):
        try:
            import google.generativeai as genai
        except ImportError as e:
            raise ImportError(
                "google-generativeai package required: pip install google-generativeai"
            ) from e
        genai.configure(api_key=self._api_key)
        return genai

    def _generation_config(self, options: GenerationOptions | None) -> dict[str, Any]:
        options = options or GenerationOptions()
        gen_config: dict[str, Any] = {}
        max_tokens = options.max_tokens or self._max_tokens_default
        if max_tokens:
            gen_config["max_output_tokens"] = max_tokens
        temperature = (
            options.temperature
            if options.temperature is not None
            else self._temperature_default
        )
        if temperature is not None:
            gen_config["temperature"] = temperature
        if options.json_output:
            gen_config["response_mime_type"] = "application/json"
        return gen_config

    async def complete(
        self,
        prompt: str,
        options: GenerationOptions | None = None,
        *,
        system: str | None = None,
        slot: ProviderSlot | None = None,
    ) -> TextCompletion:
        chat = slot.session if isinstance(slot, ChatSessionSlot) else None
        if chat is None:
            genai = self._genai()
            model = genai.GenerativeModel(self._model, system_instruction=system)
            chat = model.start_chat()
            logger.debug("Started new Gemini chat session for model %s", self._model)

        t0 = time.monotonic()
        resp = await chat.send_message_async(
            prompt, generation_config=self._generation_config(options),
        )
        latency = int((time.monotonic() - t0) * 1000)

        completion = self._to_completion(resp, latency)
        completion.slot = ChatSessionSlot(session=chat)
        return completion

    async def complete_stateless(
        self,
        prompt: str,
        system: str | None = None,
        options: GenerationOptions | None = None,
    ) -> TextCompletion:
        genai = self._genai()
        model = genai.GenerativeModel(self._model, system_instruction=system)

        t0 = time.monotonic()
        resp = await model.generate_content_async(
            prompt, generation_config=self._generation_config(options),
        )
        latency = int((time.monotonic() - t0) * 1000)
        return self._to_completion(resp, latency)

    def _to_completion(self, resp: Any, latency: int) -> TextCompletion:
        usage = getattr(resp, "usage_metadata", None)
        return TextCompletion(
            content=self._safe_text(resp),
            provider="google",
            model=self._model,
            latency_ms=latency,
            input_tokens=getattr(usage, "prompt_token_count", 0) if usage else 0,
            output_tokens=getattr(usage, "candidates_token_count", 0) if usage else 0,
            raw_response=resp,
        )

    @staticmethod
    def _safe_text(resp: Any) -> str:
        # .text raises ValueError when the candidate has no parts (blocked/empty)
        try:
            return resp.text or ""
        except ValueError:
            logger.warning("Gemini response had no text parts")
            return ""
