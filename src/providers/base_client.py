# src/providers/base_client.py
"""Abstract text, image and speech client interfaces."""

from __future__ import annotations

from abc import ABC, abstractmethod

from storyloom.context.models import ProviderSlot
from storyloom.providers.models import (
    GenerationOptions,
    ImageOptions,
    SpeechOptions,
    TextCompletion,
)


class BaseTextClient(ABC):
    """Unified interface for text generation providers."""

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        options: GenerationOptions | None = None,
        *,
        system: str | None = None,
        slot: ProviderSlot | None = None,
    ) -> TextCompletion:
        """Continue a conversation from ``slot`` (or start one) with ``prompt``.

        The returned completion carries the slot to persist for the next turn.
        """

    @abstractmethod
    async def complete_stateless(
        self,
        prompt: str,
        system: str | None = None,
        options: GenerationOptions | None = None,
    ) -> TextCompletion:
        """Single self-contained call with only the system prompt and this turn."""

    @property
    @abstractmethod
    def provider_key(self) -> str:
        """Key under which this provider's slot is stored in a context."""


class BaseImageClient(ABC):
    """Unified interface for image generation providers."""

    @abstractmethod
    async def generate(self, prompt: str, options: ImageOptions | None = None) -> bytes:
        """Generate one image; returns encoded image bytes (PNG)."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier."""


class BaseSpeechClient(ABC):
    """Unified interface for text-to-speech providers."""

    @abstractmethod
    async def synthesize(self, text: str, options: SpeechOptions | None = None) -> bytes:
        """Synthesize speech; returns encoded audio bytes."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier."""
