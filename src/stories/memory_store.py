# src/stories/memory_store.py
"""In-process story record store (STORY_BACKEND=memory)."""

from __future__ import annotations

import logging

from storyloom.core.errors import NotFoundError
from storyloom.core.models import StoryRecord, utcnow
from storyloom.stories.base_story_store import BaseStoryStore

logger = logging.getLogger(__name__)


class MemoryStoryStore(BaseStoryStore):
    """Dict-backed story records."""

    def __init__(self, stories: list[StoryRecord] | None = None) -> None:
        self._stories: dict[str, StoryRecord] = {
            s.story_id: s for s in (stories or [])
        }

    async def get_story(self, story_id: str) -> StoryRecord | None:
        story = self._stories.get(story_id)
        return story.model_copy() if story else None

    async def save_story(self, story: StoryRecord) -> None:
        self._stories[story.story_id] = story.model_copy()

    async def update_completion_percentage(self, story_id: str, percentage: int) -> None:
        self._require(story_id).completion_percentage = percentage
        self._touch(story_id)

    async def update_status(self, story_id: str, status: str) -> None:
        self._require(story_id).status = status
        self._touch(story_id)

    async def update_cover_uris(
        self,
        story_id: str,
        cover_uri: str | None = None,
        back_cover_uri: str | None = None,
    ) -> None:
        story = self._require(story_id)
        if cover_uri is not None:
            story.cover_uri = cover_uri
        if back_cover_uri is not None:
            story.back_cover_uri = back_cover_uri
        self._touch(story_id)

    def _require(self, story_id: str) -> StoryRecord:
        story = self._stories.get(story_id)
        if story is None:
            raise NotFoundError("story", story_id)
        return story

    def _touch(self, story_id: str) -> None:
        self._stories[story_id].updated_at = utcnow()
