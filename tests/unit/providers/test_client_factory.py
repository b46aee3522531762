# tests/unit/providers/test_client_factory.py
"""Tests for providers/client_factory.py — registry and lazy adapter creation."""

from __future__ import annotations

import pytest

from storyloom.config.settings import Settings
from storyloom.providers import client_factory
from storyloom.providers.adapters.anthropic_adapter import AnthropicTextAdapter
from storyloom.providers.adapters.google_adapter import GoogleTextAdapter
from storyloom.providers.adapters.openai_adapter import (
    OpenAIImageAdapter,
    OpenAISpeechAdapter,
    OpenAITextAdapter,
)
from storyloom.providers.client_factory import (
    UnsupportedProviderError,
    create_image_client,
    create_speech_client,
    create_text_client,
    register_provider,
)


class TestCreateTextClient:
    @pytest.mark.parametrize(
        "provider,cls",
        [
            ("google", GoogleTextAdapter),
            ("openai", OpenAITextAdapter),
            ("anthropic", AnthropicTextAdapter),
        ],
    )
    def test_provider_selection(self, provider, cls):
        settings = Settings(_env_file=None, text_provider=provider)
        client = create_text_client(settings)
        assert isinstance(client, cls)
        assert client.provider_key == provider

    def test_settings_flow_into_adapter(self):
        settings = Settings(
            _env_file=None,
            text_provider="openai",
            openai_text_model="gpt-test",
            openai_api_key="sk-test",
            text_max_tokens=1000,
            text_temperature=0.3,
        )
        client = create_text_client(settings)
        assert client._model == "gpt-test"
        assert client._api_key == "sk-test"
        assert client._max_tokens_default == 1000
        assert client._temperature_default == 0.3

    def test_kwargs_override(self):
        settings = Settings(_env_file=None, text_provider="anthropic")
        client = create_text_client(settings, model="claude-custom")
        assert client._model == "claude-custom"


class TestCreateMediaClients:
    def test_image(self):
        settings = Settings(_env_file=None, openai_image_size="1024x1024")
        client = create_image_client(settings)
        assert isinstance(client, OpenAIImageAdapter)
        assert client._size == "1024x1024"

    def test_speech(self):
        settings = Settings(_env_file=None, openai_speech_voice="nova")
        client = create_speech_client(settings)
        assert isinstance(client, OpenAISpeechAdapter)
        assert client._voice == "nova"


class TestRegistry:
    def test_unknown_provider(self):
        with pytest.raises(UnsupportedProviderError, match="Available"):
            client_factory._create("text", "nope", Settings(_env_file=None))

    def test_register_custom(self, monkeypatch):
        registry = {k: dict(v) for k, v in client_factory._PROVIDER_REGISTRY.items()}
        monkeypatch.setattr(client_factory, "_PROVIDER_REGISTRY", registry)
        register_provider(
            "speech",
            "custom",
            "storyloom.providers.adapters.openai_adapter.OpenAISpeechAdapter",
        )
        client = client_factory._create("speech", "custom", Settings(_env_file=None))
        assert isinstance(client, OpenAISpeechAdapter)

    def test_import_class(self):
        cls = client_factory._import_class(
            "storyloom.providers.adapters.google_adapter.GoogleTextAdapter"
        )
        assert cls is GoogleTextAdapter
