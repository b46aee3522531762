# src/handlers/assembler.py
"""Book assembly collaborator contract and the default HTML assembler."""

from __future__ import annotations

import html
from abc import ABC, abstractmethod

from pydantic import BaseModel, Field


class ManuscriptChapter(BaseModel):
    number: int
    title: str
    text: str
    image_url: str | None = None


class Manuscript(BaseModel):
    """Everything the assembler needs, gathered from the run's steps."""

    story_id: str
    run_id: str
    title: str
    synopsis: str = ""
    cover_url: str | None = None
    back_cover_url: str | None = None
    chapters: list[ManuscriptChapter] = Field(default_factory=list)


class AssembledBook(BaseModel):
    content: bytes
    content_type: str
    extension: str


class BaseAssembler(ABC):
    """Turns a manuscript into a single publishable artifact."""

    @abstractmethod
    async def assemble(self, manuscript: Manuscript) -> AssembledBook:
        """Render the manuscript."""


class HtmlAssembler(BaseAssembler):
    """Renders a self-contained HTML book."""

    async def assemble(self, manuscript: Manuscript) -> AssembledBook:
        esc = html.escape
        parts = [
            "<!DOCTYPE html>",
            '<html lang="en"><head><meta charset="utf-8">',
            f"<title>{esc(manuscript.title)}</title></head><body>",
            '<section class="cover">',
        ]
        if manuscript.cover_url:
            parts.append(f'<img src="{esc(manuscript.cover_url)}" alt="Front cover">')
        parts.append(f"<h1>{esc(manuscript.title)}</h1></section>")

        for chapter in manuscript.chapters:
            parts.append(f'<section class="chapter" id="chapter-{chapter.number}">')
            parts.append(f"<h2>Chapter {chapter.number}: {esc(chapter.title)}</h2>")
            if chapter.image_url:
                parts.append(
                    f'<img src="{esc(chapter.image_url)}" alt="Chapter {chapter.number}">'
                )
            for paragraph in chapter.text.split("\n\n"):
                if paragraph.strip():
                    parts.append(f"<p>{esc(paragraph.strip())}</p>")
            parts.append("</section>")

        parts.append('<section class="back-cover">')
        if manuscript.synopsis:
            parts.append(f"<p>{esc(manuscript.synopsis)}</p>")
        if manuscript.back_cover_url:
            parts.append(f'<img src="{esc(manuscript.back_cover_url)}" alt="Back cover">')
        parts.append("</section></body></html>")

        return AssembledBook(
            content="\n".join(parts).encode("utf-8"),
            content_type="text/html; charset=utf-8",
            extension="html",
        )
