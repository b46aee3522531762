# src/providers/adapters/anthropic_adapter.py
"""Anthropic Claude adapter implementing BaseTextClient.

The Messages API keeps no server-side conversation, so every call is
stateless and the stored slot is always StatelessSlot.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from storyloom.context.models import ProviderSlot, StatelessSlot
from storyloom.providers.base_client import BaseTextClient
from storyloom.providers.models import GenerationOptions, TextCompletion

logger = logging.getLogger(__name__)


class AnthropicTextAdapter(BaseTextClient):
    """Adapter for Anthropic Claude models."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str | None = None,
        max_tokens_default: int = 8192,
        temperature_default: float = 1.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._max_tokens_default = max_tokens_default
        self._temperature_default = temperature_default
        self.__client = None  # Lazy initialization

    @property
    def _client(self):
        """Lazy-init Anthropic client (only on first API call)."""
        if self.__client is None:
            try:
                import anthropic
            except ImportError as e:
                raise ImportError(
                    "anthropic package required: pip install anthropic"
                ) from e
            self.__client = anthropic.AsyncAnthropic(api_key=self._api_key or "")
        return self.__client

    @property
    def provider_key(self) -> str:
        return "anthropic"

    async def complete(
        self,
        prompt: str,
        options: GenerationOptions | None = None,
        *,
        system: str | None = None,
        slot: ProviderSlot | None = None,
    ) -> TextCompletion:
        completion = await self.complete_stateless(prompt, system=system, options=options)
        return completion.model_copy(update={"slot": StatelessSlot()})

    async def complete_stateless(
        self,
        prompt: str,
        system: str | None = None,
        options: GenerationOptions | None = None,
    ) -> TextCompletion:
        options = options or GenerationOptions()
        params: dict[str, Any] = {
            "model": self._model,
            "max_tokens": options.max_tokens or self._max_tokens_default,
            "temperature": (
                options.temperature
                if options.temperature is not None
                else self._temperature_default
            ),
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            params["system"] = system

        start = time.monotonic()
        response = await self._client.messages.create(**params)
        latency_ms = int((time.monotonic() - start) * 1000)

        return TextCompletion(
            content=self._extract_text(response),
            provider="anthropic",
            model=getattr(response, "model", self._model),
            latency_ms=latency_ms,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            response_id=getattr(response, "id", None),
            raw_response=response,
        )

    @staticmethod
    def _extract_text(response: Any) -> str:
        return "".join(
            block.text
            for block in response.content
            if getattr(block, "type", None) == "text"
        )
