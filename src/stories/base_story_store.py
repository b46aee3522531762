# src/stories/base_story_store.py
"""Abstract story record store.

The workflow core only reads ``chapter_count`` and writes progress,
status and cover URIs; everything else about a story lives elsewhere.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from storyloom.core.models import StoryRecord


class BaseStoryStore(ABC):
    """Unified interface for story record backends."""

    @abstractmethod
    async def get_story(self, story_id: str) -> StoryRecord | None:
        """Return the story record or None."""

    @abstractmethod
    async def save_story(self, story: StoryRecord) -> None:
        """Insert or replace a story record."""

    @abstractmethod
    async def update_completion_percentage(self, story_id: str, percentage: int) -> None:
        """Write the story's completion percentage (0-100)."""

    @abstractmethod
    async def update_status(self, story_id: str, status: str) -> None:
        """Write the story status (e.g. ``published``)."""

    @abstractmethod
    async def update_cover_uris(
        self,
        story_id: str,
        cover_uri: str | None = None,
        back_cover_uri: str | None = None,
    ) -> None:
        """Write whichever cover URIs are given; None leaves a field untouched."""
