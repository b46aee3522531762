# src/handlers/chapter_memory.py
"""Bounded continuity block built from previously written chapters.

The two most recent prior chapters are included in full, earlier ones as
tail summaries. When the block exceeds the character budget it is shrunk
in order: drop the oldest summary, demote a full chapter to its summary,
drop the outline overview, drop the continuity note. As a last resort the
block is tail-truncated.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

SUMMARY_MAX_CHARS = 1500
RECENT_FULL_CHAPTERS = 2
_MAX_SHRINK_ROUNDS = 20

_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")
_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+")


def to_plain_text(text: str) -> str:
    return _SPACE_RE.sub(" ", _TAG_RE.sub(" ", text)).strip()


def summarize(text: str) -> str:
    """Tail of a chapter: whole text if short, else its last sentences."""
    plain = to_plain_text(text)
    if len(plain) <= SUMMARY_MAX_CHARS:
        return plain
    sentences = [s for s in _SENTENCE_RE.split(plain) if s]
    last = " ".join(sentences[-10:])
    if 300 <= len(last) <= 2000:
        return "..." + last
    return "..." + plain[-SUMMARY_MAX_CHARS:]


@dataclass
class _Recent:
    number: int
    full: str
    summary: str
    use_full: bool = True


def build_chapter_memory(
    prior_chapters: dict[int, str],
    chapter_number: int,
    max_chars: int,
    outline_overview: str = "",
) -> str:
    """Serialize prior chapters into a ``<story_context>`` block.

    Args:
        prior_chapters: Chapter number to chapter text, for chapters already written.
        chapter_number: The chapter about to be written.
        max_chars: Character budget for the whole block.
        outline_overview: Optional ``1. Title | 2. Title`` overview line.

    Returns:
        The block, or an empty string when there is nothing before this chapter.
    """
    prior = sorted((n, t) for n, t in prior_chapters.items() if n < chapter_number)
    if not prior:
        return ""

    earlier = prior[:-RECENT_FULL_CHAPTERS] if len(prior) > RECENT_FULL_CHAPTERS else []
    recent = prior[-RECENT_FULL_CHAPTERS:]

    summaries = [(n, summarize(t)) for n, t in earlier]
    recents = [_Recent(n, to_plain_text(t), summarize(t)) for n, t in recent]
    overview = outline_overview
    note = (
        f"You are now writing Chapter {chapter_number}. "
        "Maintain continuity with prior chapters."
    )

    def serialize() -> str:
        sections: list[str] = []
        if overview:
            sections.append(f"  <outline_overview>{overview}</outline_overview>")
        if summaries:
            body = "\n".join(
                f'    <chapter_summary number="{n}">{s}</chapter_summary>'
                for n, s in summaries
            )
            sections.append(
                f"  <previous_chapter_summaries>\n{body}\n  </previous_chapter_summaries>"
            )
        if recents:
            lines = []
            for r in recents:
                tag = "chapter_full" if r.use_full else "chapter_summary"
                content = r.full if r.use_full else r.summary
                lines.append(f'    <{tag} number="{r.number}">{content}</{tag}>')
            sections.append("  <recent_chapters>\n" + "\n".join(lines) + "\n  </recent_chapters>")
        if note:
            sections.append(f"  <continuity_note>{note}</continuity_note>")
        if not sections:
            return ""
        return "<story_context>\n" + "\n".join(sections) + "\n</story_context>"

    block = serialize()
    rounds = 0
    while block and len(block) > max_chars and rounds < _MAX_SHRINK_ROUNDS:
        rounds += 1
        if summaries:
            summaries.pop(0)
        else:
            full = next((r for r in recents if r.use_full and r.summary), None)
            if full is not None:
                full.use_full = False
            elif overview:
                overview = ""
            elif note:
                note = ""
            else:
                break
        block = serialize()

    if len(block) > max_chars:
        logger.warning(
            "Story context for chapter %d exceeds %d chars (%d), truncating",
            chapter_number, max_chars, len(block),
        )
        return f"<story_context_truncated>{block[-max_chars:]}</story_context_truncated>"
    return block
