# src/core/step_names.py
"""Parsed step-name identifiers.

Wire names such as ``write_chapter_3`` are parsed once at the boundary into
``StepName(kind, chapter)`` so no other module matches on string prefixes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class StepKind(str, Enum):
    GENERATE_OUTLINE = "generate_outline"
    WRITE_CHAPTERS = "write_chapters"
    GENERATE_FRONT_COVER = "generate_front_cover"
    GENERATE_BACK_COVER = "generate_back_cover"
    GENERATE_IMAGES = "generate_images"
    ASSEMBLE = "assemble"
    GENERATE_AUDIOBOOK = "generate_audiobook"
    DONE = "done"

    @property
    def per_chapter(self) -> bool:
        return self in _PER_CHAPTER_PREFIX


_PER_CHAPTER_PREFIX: dict[StepKind, str] = {
    StepKind.WRITE_CHAPTERS: "write_chapter_",
    StepKind.GENERATE_IMAGES: "generate_image_chapter_",
}

_PER_CHAPTER_RE = re.compile(r"^(write_chapter_|generate_image_chapter_)(\d+)$")


@dataclass(frozen=True)
class StepName:
    """A step identifier: a kind plus a 1-based chapter for per-chapter kinds."""

    kind: StepKind
    chapter: int | None = None

    def __post_init__(self) -> None:
        if self.kind.per_chapter:
            if self.chapter is None or self.chapter < 1:
                raise ValueError(
                    f"{self.kind.value} requires a chapter number >= 1, got {self.chapter}"
                )
        elif self.chapter is not None:
            raise ValueError(f"{self.kind.value} does not take a chapter number")

    def __str__(self) -> str:
        if self.kind.per_chapter:
            return f"{_PER_CHAPTER_PREFIX[self.kind]}{self.chapter}"
        return self.kind.value

    @classmethod
    def parse(cls, name: str) -> StepName | None:
        """Parse a wire name; unknown or malformed names return None."""
        match = _PER_CHAPTER_RE.match(name)
        if match:
            chapter = int(match.group(2))
            if chapter < 1:
                return None
            kind = (
                StepKind.WRITE_CHAPTERS
                if match.group(1) == "write_chapter_"
                else StepKind.GENERATE_IMAGES
            )
            return cls(kind, chapter)
        try:
            kind = StepKind(name)
        except ValueError:
            return None
        if kind.per_chapter:
            return None
        return cls(kind)

    # Convenience constructors

    @classmethod
    def outline(cls) -> StepName:
        return cls(StepKind.GENERATE_OUTLINE)

    @classmethod
    def chapter_text(cls, chapter: int) -> StepName:
        return cls(StepKind.WRITE_CHAPTERS, chapter)

    @classmethod
    def chapter_image(cls, chapter: int) -> StepName:
        return cls(StepKind.GENERATE_IMAGES, chapter)

    @classmethod
    def front_cover(cls) -> StepName:
        return cls(StepKind.GENERATE_FRONT_COVER)

    @classmethod
    def back_cover(cls) -> StepName:
        return cls(StepKind.GENERATE_BACK_COVER)

    @classmethod
    def assemble(cls) -> StepName:
        return cls(StepKind.ASSEMBLE)

    @classmethod
    def audiobook(cls) -> StepName:
        return cls(StepKind.GENERATE_AUDIOBOOK)

    @classmethod
    def done(cls) -> StepName:
        return cls(StepKind.DONE)
