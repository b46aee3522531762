# src/handlers/models.py
"""Request, outline and result types for the step handlers."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator


# === REQUESTS ===


class StepRequest(BaseModel):
    """Identity shared by every handler invocation."""

    story_id: str = Field(min_length=1)
    run_id: str = Field(min_length=1)


class OutlineRequest(StepRequest):
    chapter_count: int | None = Field(default=None, ge=1)
    description: str = ""
    target_audience: str | None = None
    language: str = "en-US"


class ChapterRequest(StepRequest):
    chapter_number: int
    chapter_title: str | None = None
    chapter_synopsis: str | None = None


ImageType = Literal["front_cover", "back_cover", "chapter"]


class ImageRequest(StepRequest):
    image_type: ImageType
    chapter_number: int | None = None
    prompt: str | None = None


class AssemblyRequest(StepRequest):
    pass


class AudioRequest(StepRequest):
    voice: str | None = None


# === OUTLINE ===


class OutlineChapter(BaseModel):
    chapter_number: int = Field(ge=1)
    chapter_title: str = Field(min_length=1)
    chapter_synopsis: str = Field(min_length=1)
    chapter_photo_prompt: str = Field(min_length=10)


class Outline(BaseModel):
    """Structured book outline as produced by the outline step."""

    book_title: str = Field(min_length=1)
    synopsis: str = Field(min_length=1)
    target_audience: str | None = None
    book_cover_prompt: str = Field(min_length=10)
    book_back_cover_prompt: str = Field(min_length=10)
    chapters: list[OutlineChapter] = Field(min_length=1)

    @field_validator("book_title", "synopsis", "book_cover_prompt", "book_back_cover_prompt")
    @classmethod
    def strip_text(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped

    @model_validator(mode="after")
    def check_chapter_numbering(self) -> Outline:
        """Chapters must be numbered 1..N in order, with no gaps or repeats."""
        numbers = [ch.chapter_number for ch in self.chapters]
        expected = list(range(1, len(numbers) + 1))
        if numbers != expected:
            raise ValueError(
                f"chapters must be numbered {expected}, got {numbers}"
            )
        return self

    def chapter(self, number: int) -> OutlineChapter | None:
        for ch in self.chapters:
            if ch.chapter_number == number:
                return ch
        return None

    def condensed(self, max_chars: int) -> str:
        """One-line summary used to seed the story conversation."""
        chapters = " | ".join(
            f"{ch.chapter_number}. {ch.chapter_title}" for ch in self.chapters
        )
        return f"BOOK TITLE: {self.book_title}\nCHAPTERS: {chapters}"[:max_chars]


# === RESULTS ===


class StepResult(BaseModel):
    """What a handler stored for its step."""

    story_id: str
    run_id: str
    step_name: str
    detail: dict[str, Any]
    context_id: str | None = None
