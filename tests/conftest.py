# tests/conftest.py
"""Shared test fixtures for all unit and integration tests.

Provides in-memory stores, mock provider clients, a sample outline and
temp directories. No external services: all provider I/O is mocked.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from storyloom.config.settings import Settings
from storyloom.context.manager import ContextManager
from storyloom.context.memory_store import MemoryContextStore
from storyloom.context.models import ChatSessionSlot, StatelessSlot
from storyloom.core.models import StoryRecord
from storyloom.ledger.memory_ledger import MemoryStepLedger
from storyloom.progress.chapter_cache import ChapterCountCache
from storyloom.progress.estimator import ProgressEstimator
from storyloom.providers.models import TextCompletion
from storyloom.storage.local_storage import LocalObjectStorage
from storyloom.stories.memory_store import MemoryStoryStore

STORY_ID = "story-0001"


def make_outline(chapter_count: int = 3) -> dict:
    """Outline detail as stored by the outline step."""
    return {
        "book_title": "The Lantern Fox",
        "synopsis": "A small fox carries a lantern through the winter woods.",
        "target_audience": "children aged 4-8",
        "book_cover_prompt": "A red fox holding a glowing lantern in a snowy forest",
        "book_back_cover_prompt": "Footprints in the snow leading to a warm burrow",
        "chapters": [
            {
                "chapter_number": n,
                "chapter_title": f"Chapter title {n}",
                "chapter_synopsis": f"Synopsis of chapter {n}.",
                "chapter_photo_prompt": f"Watercolor illustration of scene {n} in the woods",
            }
            for n in range(1, chapter_count + 1)
        ],
    }


def completion(content: str, provider: str = "mock", slot=None) -> TextCompletion:
    return TextCompletion(content=content, provider=provider, model="mock-model", slot=slot)


# === FIXTURES: Settings ===


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings wired to in-memory backends and a temp storage root."""
    return Settings(
        _env_file=None,
        ledger_backend="memory",
        story_backend="memory",
        context_backend="memory",
        storage_backend="local",
        storage_local_root=tmp_path / "storage",
        progress_retry_delay_s=0.0,
    )


# === FIXTURES: Stores ===


@pytest.fixture
def ledger() -> MemoryStepLedger:
    return MemoryStepLedger()


@pytest.fixture
def stories() -> MemoryStoryStore:
    return MemoryStoryStore(
        [StoryRecord(story_id=STORY_ID, title="The Lantern Fox", chapter_count=3)]
    )


@pytest.fixture
def contexts() -> ContextManager:
    return ContextManager(MemoryContextStore())


@pytest.fixture
def chapter_cache() -> ChapterCountCache:
    return ChapterCountCache(ttl_s=300)


@pytest.fixture
def progress(ledger, stories, chapter_cache) -> ProgressEstimator:
    return ProgressEstimator(ledger, stories, cache=chapter_cache, retry_delay_s=0.0)


@pytest.fixture
def storage(tmp_path: Path) -> LocalObjectStorage:
    return LocalObjectStorage(root=tmp_path / "storage", public_base_url="https://cdn.test")


# === FIXTURES: Mock providers ===


@pytest.fixture
def mock_text_client() -> MagicMock:
    """Mock BaseTextClient: stateful calls return a chat slot, stateless calls plain text."""
    client = MagicMock()
    client.provider_key = "mock"
    client.complete = AsyncMock(
        return_value=completion("Once upon a time.", slot=ChatSessionSlot(session=object()))
    )
    client.complete_stateless = AsyncMock(return_value=completion("Stateless text."))
    return client


@pytest.fixture
def stateless_text_client() -> MagicMock:
    client = MagicMock()
    client.provider_key = "mock"
    client.complete = AsyncMock(return_value=completion("Chapter text.", slot=StatelessSlot()))
    client.complete_stateless = AsyncMock(return_value=completion("Fallback text."))
    return client


@pytest.fixture
def mock_image_client() -> MagicMock:
    client = MagicMock()
    client.provider_name = "mock"
    client.generate = AsyncMock(return_value=b"\x89PNG fake image")
    return client


@pytest.fixture
def mock_speech_client() -> MagicMock:
    client = MagicMock()
    client.provider_name = "mock"
    client.synthesize = AsyncMock(return_value=b"ID3audio")
    return client


# === FIXTURES: Sample data ===


@pytest.fixture
def story_id() -> str:
    return STORY_ID


@pytest.fixture
def outline_factory():
    """Build an outline detail dict with the given number of chapters."""
    return make_outline


@pytest.fixture
def sample_outline() -> dict:
    return make_outline(5)
