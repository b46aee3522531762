# src/providers/client_factory.py
"""Factory: instantiate text, image and speech clients from settings.

Adapters are registered by dotted class path and imported lazily so that
only the configured provider's SDK needs to be installed.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any, Literal

from storyloom.config.settings import Settings
from storyloom.providers.base_client import (
    BaseImageClient,
    BaseSpeechClient,
    BaseTextClient,
)

logger = logging.getLogger(__name__)

Capability = Literal["text", "image", "speech"]

# Registry of capability → provider name → adapter class path (lazy import).
_PROVIDER_REGISTRY: dict[str, dict[str, str]] = {
    "text": {
        "google": "storyloom.providers.adapters.google_adapter.GoogleTextAdapter",
        "openai": "storyloom.providers.adapters.openai_adapter.OpenAITextAdapter",
        "anthropic": "storyloom.providers.adapters.anthropic_adapter.AnthropicTextAdapter",
    },
    "image": {
        "openai": "storyloom.providers.adapters.openai_adapter.OpenAIImageAdapter",
    },
    "speech": {
        "openai": "storyloom.providers.adapters.openai_adapter.OpenAISpeechAdapter",
    },
}

_API_KEY_FIELDS = {
    "google": "google_api_key",
    "openai": "openai_api_key",
    "anthropic": "anthropic_api_key",
}


class UnsupportedProviderError(ValueError):
    """Raised when a provider is not registered for a capability."""


def create_text_client(settings: Settings, **kwargs: Any) -> BaseTextClient:
    """Instantiate the configured text adapter."""
    provider = settings.text_provider
    kwargs.setdefault("model", settings.text_model)
    kwargs.setdefault("max_tokens_default", settings.text_max_tokens)
    kwargs.setdefault("temperature_default", settings.text_temperature)
    return _create("text", provider, settings, **kwargs)


def create_image_client(settings: Settings, **kwargs: Any) -> BaseImageClient:
    """Instantiate the configured image adapter."""
    kwargs.setdefault("model", settings.image_model)
    kwargs.setdefault("size", settings.openai_image_size)
    return _create("image", settings.image_provider, settings, **kwargs)


def create_speech_client(settings: Settings, **kwargs: Any) -> BaseSpeechClient:
    """Instantiate the configured speech adapter."""
    kwargs.setdefault("model", settings.openai_speech_model)
    kwargs.setdefault("voice", settings.openai_speech_voice)
    return _create("speech", settings.speech_provider, settings, **kwargs)


def register_provider(capability: Capability, name: str, class_path: str) -> None:
    """Register a custom adapter.

    Args:
        capability: "text", "image" or "speech".
        name: Provider identifier.
        class_path: Fully qualified class path implementing the capability's ABC.
    """
    _PROVIDER_REGISTRY[capability][name] = class_path
    logger.info("Registered %s provider: %s → %s", capability, name, class_path)


def _create(capability: str, provider: str, settings: Settings, **kwargs: Any) -> Any:
    registry = _PROVIDER_REGISTRY[capability]
    if provider not in registry:
        raise UnsupportedProviderError(
            f"Unsupported {capability} provider: {provider!r}. "
            f"Available: {', '.join(sorted(registry))}"
        )
    adapter_cls = _import_class(registry[provider])

    key_field = _API_KEY_FIELDS.get(provider)
    if key_field is not None:
        kwargs.setdefault("api_key", getattr(settings, key_field))

    logger.debug(
        "Creating %s client: provider=%s, model=%s",
        capability, provider, kwargs.get("model"),
    )
    return adapter_cls(**kwargs)


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
