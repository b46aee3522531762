# src/handlers/prompts.py
"""Prompt templates for the outline and chapter steps."""

from __future__ import annotations

from storyloom.core.models import StoryRecord
from storyloom.handlers.models import Outline, OutlineChapter, OutlineRequest

OUTLINE_SYSTEM_PROMPT = (
    "You are an award-winning children's book author and editor. "
    "You plan illustrated books with clear chapter structure and vivid, "
    "illustrator-ready scene descriptions. Always answer with valid JSON only."
)

STORY_SYSTEM_PROMPT = (
    "You are an award-winning children's book author writing one chapter at a "
    "time. Keep characters, names, tone and facts consistent across chapters. "
    "Write plain prose with no headings, notes or markdown."
)

_OUTLINE_TEMPLATE = """Plan an illustrated children's book.

Title idea: {title}
Description: {description}
Target audience: {audience}
Language: {language}
Number of chapters: {chapter_count}

Return a JSON object with exactly these keys:
- "book_title": string
- "synopsis": string, 2-4 sentences
- "target_audience": string
- "book_cover_prompt": string, a detailed illustration prompt for the front cover
- "book_back_cover_prompt": string, a detailed illustration prompt for the back cover
- "chapters": a list of exactly {chapter_count} objects, each with
  "chapter_number" (1-based integer), "chapter_title", "chapter_synopsis" and
  "chapter_photo_prompt" (a detailed illustration prompt for the chapter)
"""

_OUTLINE_RETRY_NOTE = """
Your previous answer was rejected: {problems}
Return the complete JSON object again, fixing these problems.
"""

_CHAPTER_TEMPLATE = """Write chapter {number} of {total} of "{book_title}".

Chapter title: {title}
Chapter synopsis: {synopsis}
{ending}
"""


def build_outline_prompt(
    story: StoryRecord,
    request: OutlineRequest,
    chapter_count: int,
    problems: list[str] | None = None,
) -> str:
    prompt = _OUTLINE_TEMPLATE.format(
        title=story.title or "(choose one)",
        description=request.description or "(none given)",
        audience=request.target_audience or "children aged 4-8",
        language=request.language,
        chapter_count=chapter_count,
    )
    if problems:
        prompt += _OUTLINE_RETRY_NOTE.format(problems="; ".join(problems))
    return prompt


def build_story_system_prompt(outline: Outline, summary_max_chars: int) -> str:
    """System prompt seeding the story conversation with the condensed outline."""
    return f"{STORY_SYSTEM_PROMPT}\n\n{outline.condensed(summary_max_chars)}"


def build_chapter_prompt(
    outline: Outline,
    chapter: OutlineChapter,
    title: str | None = None,
    synopsis: str | None = None,
) -> str:
    total = len(outline.chapters)
    ending = (
        "If relevant, you may end with a hook for the next chapter."
        if chapter.chapter_number < total
        else "This is the final chapter: bring the story to a satisfying close."
    )
    return _CHAPTER_TEMPLATE.format(
        number=chapter.chapter_number,
        total=total,
        book_title=outline.book_title,
        title=title or chapter.chapter_title,
        synopsis=synopsis or chapter.chapter_synopsis,
        ending=ending,
    )


def outline_overview(outline: Outline) -> str:
    return " | ".join(f"{ch.chapter_number}. {ch.chapter_title}" for ch in outline.chapters)
